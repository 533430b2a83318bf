import re

from x1library.normalizer import (
    clean_for_lookup, collapse_to_alnum, normalize_key, numeric_tokens,
    strip_trailing_parenthetical, tokenize,
)

SAMPLES = [
    "Halo 2 (USA)",
    "  _Fable_  ",
    "Tom Clancy’s Splinter Cell",
    "Tony Hawkâ€™s Underground\t2",
    "Ninja Gaiden [!] (Europe) (En,Fr)",
    "",
    "   ",
    "Pokémon? No: Blinx - The Time Sweeper",
    "ÉCLAIR   _ 3",
]


def test_clean_for_lookup_strips_tags_and_underscores():
    assert clean_for_lookup("  Halo_2 (USA) [!]  ") == "Halo 2"
    assert clean_for_lookup("Jet Set Radio Future [b] (NTSC-U)") == "Jet Set Radio Future"
    assert clean_for_lookup("(USA)") == ""


def test_normalize_key_lowercases_and_unifies_apostrophes():
    assert normalize_key("Tony Hawk’s  Pro_Skater") == "tony hawk's pro skater"
    assert normalize_key("Tony Hawkâ€™s") == "tony hawk's"
    assert normalize_key("  A\t\tB  ") == "a b"


def test_normalize_key_is_idempotent():
    for sample in SAMPLES:
        once = normalize_key(sample)
        assert normalize_key(once) == once


def test_strip_trailing_parenthetical_removes_one_group():
    assert strip_trailing_parenthetical("halo 2 (usa)") == "halo 2"
    assert strip_trailing_parenthetical("fable (usa) (en,fr)") == "fable (usa)"
    assert strip_trailing_parenthetical("(usa)") == ""
    assert strip_trailing_parenthetical("halo (usa) 2") == "halo (usa) 2"


def test_collapse_to_alnum_keeps_only_lowercase_letters_and_digits():
    assert collapse_to_alnum("Halo: Combat Evolved!") == "halocombatevolved"
    assert collapse_to_alnum("Halo 2 (USA)") == "halo2usa"
    for sample in SAMPLES:
        assert re.fullmatch(r"[a-z0-9]*", collapse_to_alnum(sample))


def test_tokenize_drops_stopwords_and_short_words():
    tokens = tokenize("The Lord of the Rings: The Two Towers")
    assert tokens == frozenset({"lord", "rings", "two", "towers"})
    assert tokenize("Tom Clancy's Splinter Cell") == frozenset({"tom", "clancy", "splinter", "cell"})


def test_tokenize_keeps_single_digit_numbers():
    assert tokenize("Halo 2") == frozenset({"halo", "2"})
    assert numeric_tokens(tokenize("Halo 2")) == frozenset({"2"})
    assert numeric_tokens(tokenize("Project Gotham Racing 2 2005")) == frozenset({"2", "2005"})


def test_tokenize_merges_duplicates():
    assert tokenize("Sega GT sega gt") == frozenset({"sega", "gt"})
