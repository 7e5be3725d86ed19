"""Atomic file replacement: write to a temp file, read it back, then move into place.

The original file is only touched by the final ``os.replace``; a crash before
that leaves at most a stray ``.tmp`` file next to it.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from testmedic.shared.domain.exceptions import WriteVerificationFailure
from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def write_atomic(path: str | Path, data: bytes) -> None:
    """
    Replace path with data, or leave it untouched.

    Raises:
        WriteVerificationFailure: If staging fails or the staged bytes differ
    """
    path = Path(path)
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=str(directory), prefix=f".{path.name}.", suffix=".tmp")
    closed = False
    try:
        _write_all(fd, data)
        os.fsync(fd)
        os.close(fd)
        closed = True

        if Path(tmp_path).read_bytes() != data:
            raise WriteVerificationFailure(
                f"Staged content for {path.name} does not match the intended bytes",
                {"path": str(path)},
            )

        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException as e:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        if isinstance(e, OSError):
            raise WriteVerificationFailure(f"Could not write {path.name}: {e}", {"path": str(path)}) from e
        raise


class FileApplier:
    """Applies new test content with write-verify-move."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def apply(self, file_path: str | Path, content: str) -> None:
        data = content.encode(self.encoding)
        write_atomic(file_path, data)
        logger.info("file_applied", file=str(file_path), bytes=len(data))
