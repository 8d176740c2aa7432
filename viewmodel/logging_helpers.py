"""Utility helpers for routing log messages and exceptions through a ViewModel.

These helpers centralize how we surface log output to the GUI. They attempt to
emit messages via a viewmodel's ``log_message`` (or ``warning_message``)
signal when available and fall back to the module logger so messages are
never lost silently.
"""
from __future__ import annotations

import logging
import sys
import traceback
from typing import Optional

logger = logging.getLogger(__name__)


def _emit_on(vm: Optional[object], signal_name: str, text: str) -> bool:
    """Emit *text* on ``vm.<signal_name>``; return True when it was delivered."""
    if vm is None:
        return False
    signal = getattr(vm, signal_name, None)
    if signal is None or not hasattr(signal, "emit"):
        return False
    try:
        signal.emit(text)
        return True
    except Exception:
        # a broken slot must not turn a log call into a crash
        return False


def log_message(message: str, vm: Optional[object] = None) -> None:
    """Emit *message* through ``vm.log_message`` when possible, else log it."""
    text = str(message)
    try:
        if not _emit_on(vm, "log_message", text):
            logger.info(text)
    except Exception:
        # never raise from the logger itself
        pass


def log_warning(message: str, vm: Optional[object] = None) -> None:
    """Surface *message* to the user as a warning.

    Goes out on ``vm.warning_message`` (the user-visible channel) and is
    mirrored to ``vm.log_message`` so the log dock keeps a record.
    """
    text = str(message)
    try:
        delivered = _emit_on(vm, "warning_message", text)
        delivered = _emit_on(vm, "log_message", text) or delivered
        if not delivered:
            logger.warning(text)
    except Exception:
        pass


def log_exception(context: str, exc: Optional[BaseException] = None, vm: Optional[object] = None) -> None:
    """Format *exc* with traceback and delegate to :func:`log_message`."""
    try:
        if exc is None:
            exc = sys.exc_info()[1]
        if exc is not None and exc.__traceback__ is not None:
            tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        else:
            tb = ""
        if exc is None:
            payload = f"{context}: (no exception details available)"
        elif tb:
            payload = f"{context}: {exc}\n{tb}"
        else:
            payload = f"{context}: {exc}"
        log_message(payload, vm=vm)
    except Exception:
        try:
            logger.error("%s: logging failed for exception %s", context, exc)
        except Exception:
            pass


def safe_emit(signal, *args, vm: Optional[object] = None, signal_name: str = "signal"):
    """Safely emit a Qt signal, catching and logging any exceptions.

    Args:
        signal: Qt signal to emit
        *args: Arguments to pass to signal.emit()
        vm: ViewModel instance for logging
        signal_name: Name of signal for error messages
    """
    try:
        signal.emit(*args)
    except Exception as e:
        log_exception(f"Failed to emit {signal_name}", e, vm=vm)
