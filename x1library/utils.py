"""
Formatting helpers for library listings
"""

SIZE_UNITS = ('B', 'KB', 'MB', 'GB', 'TB')


def format_size(size_bytes: int) -> str:
    """
    Human-readable image size, e.g. 7.3 GB for a dual-layer dump.

    Sizes the scanner could not read come through as 0 and print as "Unknown".
    """
    if size_bytes <= 0:
        return "Unknown"
    value = float(size_bytes)
    for unit in SIZE_UNITS[:-1]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {SIZE_UNITS[-1]}"


def truncate_string(text: str, width: int, ellipsis: str = '...') -> str:
    """Fit ``text`` into ``width`` columns, marking the cut with ``ellipsis``."""
    if len(text) <= width:
        return text
    return text[:max(width - len(ellipsis), 0)] + ellipsis
