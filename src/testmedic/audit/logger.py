"""Append-only audit log of mutating actions.

One line per entry::

    [2026-01-05T10:00:00+00:00] [SUCCESS] FILE_MODIFIED: tests/login.spec.ts | confidence=80

The file is independent of in-memory state; the orchestrator only appends.
Reading and clearing exist for tooling.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_LINE = re.compile(r"^\[(?P<ts>[^\]]+)\] \[(?P<status>[A-Z]+)\] (?P<action>[^:]+): (?P<path>.*?) \| (?P<details>.*)$")


class AuditStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    FAILURE = "failure"


@dataclass(frozen=True)
class AuditLogEntry:
    """One recorded operation."""

    timestamp: str
    action: str
    file_path: str
    details: str
    status: AuditStatus

    def to_line(self) -> str:
        # Entries stay single-line so the file can be parsed back
        details = " ".join(str(self.details).splitlines())
        return f"[{self.timestamp}] [{self.status.value.upper()}] {self.action}: {self.file_path} | {details}\n"

    @classmethod
    def from_line(cls, line: str) -> AuditLogEntry | None:
        match = _LINE.match(line.rstrip("\n"))
        if not match:
            return None
        try:
            status = AuditStatus(match.group("status").lower())
        except ValueError:
            return None
        return cls(
            timestamp=match.group("ts"),
            action=match.group("action"),
            file_path=match.group("path"),
            details=match.group("details"),
            status=status,
        )


class AuditLogger:
    """Appends AuditLogEntry lines to a file, mirroring each one to structlog."""

    def __init__(self, log_path: str | Path) -> None:
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: AuditLogEntry) -> bool:
        """Append one entry. Returns False if the write failed (the failure is logged)."""
        log_method = {
            AuditStatus.SUCCESS: logger.info,
            AuditStatus.WARNING: logger.warning,
            AuditStatus.FAILURE: logger.error,
        }[entry.status]
        log_method("audit_entry", action=entry.action, file=entry.file_path, details=entry.details)

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("a", encoding="utf-8") as f:
                f.write(entry.to_line())
        except OSError as e:
            logger.error("audit_write_failed", path=str(self.log_path), action=entry.action, error=str(e))
            return False
        return True

    def _record(self, status: AuditStatus, action: str, file_path: str | Path, details: str) -> bool:
        return self.log(
            AuditLogEntry(
                timestamp=datetime.now(timezone.utc).isoformat(),
                action=action,
                file_path=str(file_path),
                details=details,
                status=status,
            )
        )

    def log_success(self, action: str, file_path: str | Path, details: str = "") -> bool:
        return self._record(AuditStatus.SUCCESS, action, file_path, details)

    def log_warning(self, action: str, file_path: str | Path, details: str = "") -> bool:
        return self._record(AuditStatus.WARNING, action, file_path, details)

    def log_failure(self, action: str, file_path: str | Path, details: str = "") -> bool:
        return self._record(AuditStatus.FAILURE, action, file_path, details)

    def read(self) -> str:
        """Whole log as text; empty string if it does not exist or cannot be read."""
        try:
            return self.log_path.read_text(encoding="utf-8")
        except OSError:
            return ""

    def entries(self) -> list[AuditLogEntry]:
        parsed = (AuditLogEntry.from_line(line) for line in self.read().splitlines())
        return [e for e in parsed if e is not None]

    def clear(self) -> None:
        """Truncate the log. Tooling only; never called during a session."""
        if self.log_path.exists():
            self.log_path.write_text("", encoding="utf-8")
            logger.info("audit_log_cleared", path=str(self.log_path))
