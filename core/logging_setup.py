"""Logging configuration for the faucet farm.

Every record goes to two places: the console, through a handler that
never fails on characters the terminal cannot encode, and
``logs/farm.log``, rotated at 10 MiB with five gzip backups.

Both handlers carry a :class:`PrivateKeyFilter` so that a private key
can never reach the console or the log file, even when it slips into an
exception message.

Usage::

    from core.logging_setup import setup_logging
    setup_logging("DEBUG")
"""

import gzip
import logging
import os
import re
import shutil
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from core.config import LOGS_DIR

# 32-byte hex secrets, with or without 0x prefix
PRIVATE_KEY_PATTERN = re.compile(r"\b(?:0x)?[0-9a-fA-F]{64}\b")
REDACTED = "<redacted-key>"


class PrivateKeyFilter(logging.Filter):
    """Redact anything that looks like a raw private key.

    Transaction hashes share the 32-byte hex shape, so bare hashes are
    redacted as well.  Hashes logged as explorer links (``.../tx/<hash>``)
    are left intact.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if not PRIVATE_KEY_PATTERN.search(message):
            return True
        redacted = PRIVATE_KEY_PATTERN.sub(self._replace, message)
        record.msg = redacted
        record.args = None
        return True

    @staticmethod
    def _replace(match: "re.Match[str]") -> str:
        start = match.start()
        text = match.string
        if text[max(0, start - 4):start] == "/tx/":
            return match.group(0)
        return REDACTED


LOG_FILE_NAME = "farm.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def _gzip_rotate(source: str, dest: str) -> None:
    with open(source, "rb") as plain, gzip.open(dest, "wb") as packed:
        shutil.copyfileobj(plain, packed)
    os.remove(source)


class CompressedRotatingFileHandler(RotatingFileHandler):
    """Size-rotated log file whose backups are kept as ``.gz`` archives."""

    def __init__(
        self,
        filename: str,
        max_bytes: int = LOG_MAX_BYTES,
        backup_count: int = LOG_BACKUP_COUNT,
    ) -> None:
        super().__init__(
            filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self.namer = lambda name: f"{name}.gz"
        self.rotator = _gzip_rotate


class SafeStreamHandler(logging.StreamHandler):
    """Console handler that degrades unencodable characters to ``?``.

    Emoji in log lines would otherwise raise on narrow console code pages.
    """

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        encoding = getattr(self.stream, "encoding", None) or "utf-8"
        return text.encode(encoding, errors="replace").decode(encoding)


def setup_logging(
    log_level: str = "INFO", log_path: Optional[str] = None,
) -> None:
    """Configure the root logger with console and file handlers.

    Args:
        log_level: Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).
            Unknown names fall back to ``INFO``.
        log_path: Log file location (default ``LOGS_DIR/farm.log``).
    """
    if sys.platform == "win32" and hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')

    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = log_path or str(LOGS_DIR / LOG_FILE_NAME)
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = CompressedRotatingFileHandler(log_path)
    stream_handler = SafeStreamHandler(sys.stdout)

    key_filter = PrivateKeyFilter()
    file_handler.addFilter(key_filter)
    stream_handler.addFilter(key_filter)

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s - %(message)s',
        handlers=[file_handler, stream_handler],
        force=True,
    )
    # web3 and urllib3 are chatty at DEBUG
    logging.getLogger("web3").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
