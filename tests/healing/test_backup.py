"""Tests for BackupManager and atomic writes."""

import os
from unittest.mock import patch

import pytest

from testmedic.healing.applier import FileApplier, write_atomic
from testmedic.healing.backup import BackupManager
from testmedic.healing.models import Backup
from testmedic.shared.domain.exceptions import BackupFailure, RollbackFailure, WriteVerificationFailure

from conftest import FIXED_SPEC, ORIGINAL_SPEC

DAY = 86400


class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestBackupManager:
    def test_create_copies_bytes(self, spec_file, backup_manager):
        backup = backup_manager.create(spec_file)

        assert backup.original_path == str(spec_file)
        assert backup.size == len(ORIGINAL_SPEC.encode())
        with open(backup.backup_path, "rb") as f:
            assert f.read() == spec_file.read_bytes()
        assert os.path.basename(backup.backup_path).startswith("login.spec.ts.")
        assert backup.backup_path.endswith(".bak")

    def test_same_millisecond_backups_do_not_collide(self, spec_file, tmp_path):
        manager = BackupManager(tmp_path / "bk", clock=FakeClock(1_700_000_000.0))
        first = manager.create(spec_file)
        second = manager.create(spec_file)
        assert first.backup_path != second.backup_path
        assert len(manager.list_backups()) == 2

    def test_create_missing_file(self, tmp_path, backup_manager):
        with pytest.raises(BackupFailure):
            backup_manager.create(tmp_path / "missing.spec.ts")
        assert backup_manager.list_backups() == []

    def test_restore_is_byte_identical(self, spec_file, backup_manager):
        original = spec_file.read_bytes()
        backup = backup_manager.create(spec_file)
        spec_file.write_text(FIXED_SPEC, encoding="utf-8")

        backup_manager.restore(backup)

        assert spec_file.read_bytes() == original

    def test_restore_from_missing_backup(self, spec_file, tmp_path, backup_manager):
        backup = Backup(original_path=str(spec_file), backup_path=str(tmp_path / "gone.bak"), created_at=0.0)
        with pytest.raises(RollbackFailure):
            backup_manager.restore(backup)
        assert spec_file.read_text(encoding="utf-8") == ORIGINAL_SPEC


class TestRetention:
    def test_old_backups_removed(self, spec_file, tmp_path):
        clock = FakeClock(1_700_000_000.0)
        manager = BackupManager(tmp_path / "bk", retention_days=7, max_count=50, clock=clock)
        old = manager.create(spec_file)
        clock.now += 8 * DAY
        recent = manager.create(spec_file)

        removed = manager.enforce_retention()

        assert [str(p) for p in removed] == [old.backup_path]
        assert [str(p) for p in manager.list_backups()] == [recent.backup_path]

    def test_count_limit_per_file(self, spec_file, tmp_path):
        other = tmp_path / "other" / "login.spec.ts"
        other.parent.mkdir()
        other.write_text(ORIGINAL_SPEC, encoding="utf-8")

        clock = FakeClock(1_700_000_000.0)
        manager = BackupManager(tmp_path / "bk", retention_days=7, max_count=2, clock=clock)
        created = []
        for _ in range(4):
            created.append(manager.create(spec_file))
            clock.now += 60
        other_backup = manager.create(other)

        removed = manager.enforce_retention()

        assert sorted(str(p) for p in removed) == sorted(b.backup_path for b in created[:2])
        kept = {str(p) for p in manager.list_backups()}
        assert kept == {created[2].backup_path, created[3].backup_path, other_backup.backup_path}

    def test_ignores_foreign_files(self, tmp_path):
        backup_dir = tmp_path / "bk"
        backup_dir.mkdir()
        (backup_dir / "notes.txt").write_text("keep me", encoding="utf-8")
        manager = BackupManager(backup_dir, retention_days=0, max_count=0)
        assert manager.enforce_retention() == []
        assert (backup_dir / "notes.txt").exists()

    def test_missing_directory(self, tmp_path):
        assert BackupManager(tmp_path / "never").enforce_retention() == []


class TestWriteAtomic:
    def test_replaces_content(self, spec_file):
        write_atomic(spec_file, FIXED_SPEC.encode())
        assert spec_file.read_text(encoding="utf-8") == FIXED_SPEC
        assert [p.name for p in spec_file.parent.iterdir()] == ["login.spec.ts"]

    def test_preserves_mode(self, spec_file):
        spec_file.chmod(0o640)
        write_atomic(spec_file, b"x")
        assert spec_file.stat().st_mode & 0o777 == 0o640

    def test_failed_write_leaves_original_untouched(self, spec_file):
        with patch("testmedic.healing.applier.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(WriteVerificationFailure):
                write_atomic(spec_file, FIXED_SPEC.encode())
        assert spec_file.read_text(encoding="utf-8") == ORIGINAL_SPEC
        assert [p.name for p in spec_file.parent.iterdir()] == ["login.spec.ts"]

    def test_readback_mismatch(self, spec_file):
        with patch("testmedic.healing.applier.Path.read_bytes", return_value=b"corrupted"):
            with pytest.raises(WriteVerificationFailure):
                write_atomic(spec_file, FIXED_SPEC.encode())
        assert spec_file.read_text(encoding="utf-8") == ORIGINAL_SPEC

    def test_file_applier(self, spec_file):
        FileApplier().apply(spec_file, FIXED_SPEC)
        assert spec_file.read_text(encoding="utf-8") == FIXED_SPEC
