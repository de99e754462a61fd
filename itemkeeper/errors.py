"""
Exceptions and error logging for itemkeeper.

Logs full stack traces for debugging while showing clean messages to users.
"""

import logging
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Error communicating with the remote ledger."""


class IntentError(Exception):
    """Error communicating with the intent classification service."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting ITEMKEEPER_STORE_PATH."""
    store = os.environ.get("ITEMKEEPER_STORE_PATH")
    if store:
        return Path(store) / "itemkeeper-errors.log"
    return Path.home() / ".itemkeeper" / "itemkeeper-errors.log"


def _format_entry(exc: BaseException, context: str) -> str:
    header = f"[{datetime.now(timezone.utc).isoformat()}]"
    if context:
        header += f" {context}"
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return f"\n{'=' * 60}\n{header}\n{''.join(lines)}"


def log_exception(exc: BaseException, context: str = "") -> Path:
    """
    Append ``exc`` with its traceback to the error log.

    The file is created owner-readable only. A failure to write is
    reported on the module logger and otherwise ignored.

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    entry = _format_entry(exc, context)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError as e:
        logger.warning("Could not write error log %s: %s", log_path, e)
    return log_path
