"""
File writes used by apply, save-local and the context index.
"""

import os
import shutil
import tempfile
from pathlib import Path


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def atomic_write_text(path: Path, content: str) -> None:
    """
    Write ``content`` to ``path`` via a temp file and ``os.replace``.

    Parent directories are created. Readers never see a half-written file.
    An existing file keeps its permission bits; a new one gets the usual
    ``0o666`` minus the umask, as with a plain ``open(path, "w")``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if path.is_file():
            shutil.copymode(path, temp_path)
        else:
            os.chmod(temp_path, 0o666 & ~_current_umask())
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
