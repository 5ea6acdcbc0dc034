from __future__ import annotations

import contextlib
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional

DEFAULT_MODE = 0o644


class CacheStore:
    """Single cached resource file, replaced atomically on every write.

    Readers only ever see the previous complete file or the new complete
    file; a failed write leaves the previous content in place.
    """

    def __init__(self, root: Path, name: str) -> None:
        self.root = root
        self.name = name
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.root / self.name

    def exists(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.R_OK)

    def last_modified(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def read(self) -> bytes:
        return self.path.read_bytes()

    def _target_mode(self) -> int:
        try:
            return stat.S_IMODE(self.path.stat().st_mode)
        except FileNotFoundError:
            return DEFAULT_MODE

    def write_atomically(self, data: bytes) -> Path:
        target = self.path
        mode = self._target_mode()
        fd, tmp_name = tempfile.mkstemp(dir=str(self.root), prefix=f".{self.name}.", suffix=".tmp")
        tmp_path: Path | None = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, target)
            tmp_path = None
        finally:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
        return target
