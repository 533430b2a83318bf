"""
Runtime logging for X1 Library.

One dated log file per day under LOGS_DIR, an optional stderr echo, a
faulthandler dump for hard crashes, and hooks so exceptions escaping the main
thread or a worker thread always reach the log.
"""

from __future__ import annotations

import faulthandler
import logging
import sys
import threading
import time
import traceback
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional

LOGGER_NAME = "x1library"
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_state_lock = threading.Lock()
_handlers: List[logging.Handler] = []
_crash_file = None
_previous_hooks = None


def get_log_path(log_dir: Optional[str] = None) -> Path:
    """Today's log file, creating its folder if needed."""
    from .shared_config import LOGS_DIR

    folder = Path(log_dir or LOGS_DIR)
    folder.mkdir(parents=True, exist_ok=True)
    return folder / f"{LOGGER_NAME}-{date.today().isoformat()}.log"


def setup_runtime_monitor(
    app_name: str = LOGGER_NAME,
    *,
    log_dir: Optional[str] = None,
    echo: bool = False,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Attach the runtime handlers to the ``app_name`` logger.

    Safe to call more than once; only the first call per process (or per
    shutdown_runtime_monitor) has an effect.
    """
    global _crash_file, _previous_hooks
    logger = logging.getLogger(app_name)

    with _state_lock:
        if _handlers:
            return logger

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        log_path = get_log_path(log_dir)

        handlers: List[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
        if echo:
            handlers.append(logging.StreamHandler(sys.stderr))
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        _handlers.extend(handlers)

        logger.setLevel(level)
        logger.propagate = False

        _crash_file = log_path.with_name(f"{LOGGER_NAME}-crash.log").open("a", encoding="utf-8")
        faulthandler.enable(file=_crash_file)

        _previous_hooks = (sys.excepthook, threading.excepthook)
        _install_exception_hooks(logger)

    logger.info("Logging to %s", log_path)
    return logger


def shutdown_runtime_monitor(app_name: str = LOGGER_NAME) -> None:
    """Detach and close everything setup_runtime_monitor installed."""
    global _crash_file, _previous_hooks
    logger = logging.getLogger(app_name)

    with _state_lock:
        for handler in _handlers:
            logger.removeHandler(handler)
            handler.close()
        _handlers.clear()
        logger.propagate = True

        if _crash_file is not None:
            faulthandler.disable()
            _crash_file.close()
            _crash_file = None

        if _previous_hooks is not None:
            sys.excepthook, threading.excepthook = _previous_hooks
            _previous_hooks = None


def _echo_traceback(title: str, exc_type, exc_value, exc_tb) -> None:
    stream = sys.__stderr__ or sys.stderr
    if stream is None:
        return
    print(f"[{LOGGER_NAME}] {title}", file=stream)
    traceback.print_exception(exc_type, exc_value, exc_tb, file=stream)
    stream.flush()


def _install_exception_hooks(logger: logging.Logger) -> None:
    def _main_hook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
        _echo_traceback("Uncaught exception", exc_type, exc_value, exc_tb)

    def _worker_hook(args):
        name = args.thread.name if args.thread is not None else "?"
        exc_info = (args.exc_type, args.exc_value, args.exc_traceback)
        logger.critical("Uncaught exception in worker %s", name, exc_info=exc_info)
        _echo_traceback(f"Uncaught exception in worker {name}", *exc_info)

    sys.excepthook = _main_hook
    threading.excepthook = _worker_hook


def monitor_action(action: str, *, logger: Optional[logging.Logger] = None) -> None:
    """Log a user-visible action (scan, lookup, conversion, ...)."""
    (logger or logging.getLogger(LOGGER_NAME)).info("action: %s", action)


def start_monitored_thread(
    target: Callable[[], None],
    *,
    name: str,
    logger: Optional[logging.Logger] = None,
    daemon: bool = True,
) -> threading.Thread:
    """Run ``target`` on a named worker thread whose lifetime is logged."""
    log = logger or logging.getLogger(LOGGER_NAME)

    def _run():
        began = time.monotonic()
        log.info("worker %s started", name)
        try:
            target()
        except Exception:
            log.exception("worker %s crashed", name)
            raise
        log.info("worker %s finished in %.2fs", name, time.monotonic() - began)

    worker = threading.Thread(target=_run, name=name, daemon=daemon)
    worker.start()
    return worker
