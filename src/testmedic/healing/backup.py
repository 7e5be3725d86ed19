"""Backups of test files taken before modification, with a retention policy."""

from __future__ import annotations

import hashlib
import re
import time
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path

from testmedic.healing.applier import write_atomic
from testmedic.healing.models import Backup
from testmedic.shared.domain.exceptions import BackupFailure, RollbackFailure, WriteVerificationFailure
from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

BACKUP_SUFFIX = ".bak"
# <file name>.<path digest>.<epoch ms>[-n].bak
_BACKUP_NAME = re.compile(r"^(?P<key>.+\.[0-9a-f]{8})\.(?P<ts>\d+)(?:-\d+)?\.bak$")


def _path_digest(path: Path) -> str:
    """Separates same-named files from different directories."""
    return hashlib.sha256(str(path.resolve()).encode()).hexdigest()[:8]


class BackupManager:
    """Creates, restores and prunes backups in one directory."""

    def __init__(
        self,
        backup_dir: str | Path,
        retention_days: int = 7,
        max_count: int = 50,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backup_dir = Path(backup_dir)
        self.retention_days = retention_days
        self.max_count = max_count
        self._clock = clock

    def _target_for(self, source: Path, created_at: float) -> Path:
        stem = f"{source.name}.{_path_digest(source)}.{int(created_at * 1000)}"
        target = self.backup_dir / f"{stem}{BACKUP_SUFFIX}"
        counter = 1
        while target.exists():
            target = self.backup_dir / f"{stem}-{counter}{BACKUP_SUFFIX}"
            counter += 1
        return target

    def create(self, file_path: str | Path) -> Backup:
        """
        Copy file_path into the backup directory and verify the copy.

        Raises:
            BackupFailure: If the copy cannot be made or does not match; any
                partial copy is removed
        """
        source = Path(file_path)
        created_at = self._clock()
        target: Path | None = None
        try:
            data = source.read_bytes()
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            target = self._target_for(source, created_at)
            target.write_bytes(data)
            if target.read_bytes() != data:
                raise BackupFailure(f"Backup of {source.name} does not match the original", {"path": str(source)})
        except (OSError, BackupFailure) as e:
            if target is not None:
                target.unlink(missing_ok=True)
            logger.error("backup_failed", file=str(source), error=str(e))
            if isinstance(e, BackupFailure):
                raise
            raise BackupFailure(f"Could not back up {source.name}: {e}", {"path": str(source)}) from e

        logger.info("backup_created", file=str(source), backup=str(target), size=len(data))
        return Backup(original_path=str(source), backup_path=str(target), created_at=created_at, size=len(data))

    def restore(self, backup: Backup) -> None:
        """
        Put the backed-up bytes back in place, atomically.

        Raises:
            RollbackFailure: If the backup is unreadable or the write fails
        """
        try:
            data = Path(backup.backup_path).read_bytes()
            write_atomic(backup.original_path, data)
        except (OSError, WriteVerificationFailure) as e:
            logger.error("restore_failed", file=backup.original_path, backup=backup.backup_path, error=str(e))
            raise RollbackFailure(
                f"Could not restore {Path(backup.original_path).name} from {backup.backup_path}: {e}",
                {"backup": backup.backup_path},
            ) from e
        logger.info("backup_restored", file=backup.original_path, backup=backup.backup_path)

    def list_backups(self) -> list[Path]:
        if not self.backup_dir.is_dir():
            return []
        return sorted(p for p in self.backup_dir.iterdir() if p.is_file() and _BACKUP_NAME.match(p.name))

    def enforce_retention(self) -> list[Path]:
        """
        Delete backups older than retention_days, then all but the newest
        max_count per original file.

        Returns:
            Paths that were removed
        """
        now = self._clock()
        max_age = self.retention_days * 86400
        groups: dict[str, list[tuple[float, Path]]] = defaultdict(list)
        removed: list[Path] = []

        for path in self.list_backups():
            match = _BACKUP_NAME.match(path.name)
            created_at = int(match.group("ts")) / 1000
            if now - created_at > max_age:
                removed.append(path)
            else:
                groups[match.group("key")].append((created_at, path))

        for entries in groups.values():
            entries.sort(key=lambda item: (item[0], item[1].name), reverse=True)
            removed.extend(path for _, path in entries[self.max_count:])

        deleted = []
        for path in removed:
            try:
                path.unlink()
                deleted.append(path)
            except OSError as e:
                logger.warning("backup_prune_failed", backup=str(path), error=str(e))

        if deleted:
            logger.info("backups_pruned", count=len(deleted), backup_dir=str(self.backup_dir))
        return deleted
