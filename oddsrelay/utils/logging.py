"""
Logging for the odds relay: structlog setup and the per-match audit trail.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog
from structlog.processors import JSONRenderer, TimeStamper

from oddsrelay.models.schemas import MatchRecord


class _Tee:
    """File-like object duplicating writes to several streams."""

    def __init__(self, *streams: TextIO):
        self._streams = streams

    def write(self, data: str) -> int:
        for stream in self._streams:
            stream.write(data)
        return len(data)

    def flush(self) -> None:
        for stream in self._streams:
            stream.flush()


# Log file opened by setup_logging
_log_file_handle: Optional[TextIO] = None


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure structlog for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that receives a copy of every line
    """
    global _log_file_handle
    close_logging()

    output: TextIO = sys.stdout
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _log_file_handle = open(log_file, "a", encoding="utf-8")
        output = _Tee(sys.stdout, _log_file_handle)  # type: ignore[assignment]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            TimeStamper(fmt="iso"),
            JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )


def close_logging() -> None:
    """Close the log file opened by setup_logging, if any."""
    global _log_file_handle
    if _log_file_handle is not None:
        _log_file_handle.close()
        _log_file_handle = None


def sanitize_match_name(match_name: str) -> str:
    """Make a display name usable as a file name (slashes stripped)."""
    return match_name.replace("/", "")


class MatchAuditLog:
    """
    Append-only audit trail of processed matches.

    One JSONL file per match, named after the match display name. Each
    capture is one line. The file is opened and closed for every record.
    Write failures are logged and never raised.
    """

    def __init__(self, data_dir: str = "odds_data"):
        self.data_dir = Path(data_dir)
        self.logger = structlog.get_logger("match_audit")

    def path_for(self, record: MatchRecord) -> Path:
        name = sanitize_match_name(f"{record.home_team} vs {record.away_team}")
        return self.data_dir / f"{name}.jsonl"

    def append(self, record: MatchRecord) -> bool:
        """Append one record. Returns False if it could not be written."""
        path = self.path_for(record)
        try:
            line = record.to_json()
            with open(path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except (OSError, ValueError) as e:
            self.logger.error(
                "Audit write failed",
                path=str(path),
                event_id=record.event_id,
                error=str(e),
            )
            return False
        return True

    @staticmethod
    def read(path: Path) -> list[MatchRecord]:
        """Decode every record of an audit file."""
        records = []
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    records.append(MatchRecord.model_validate_json(line))
        return records
