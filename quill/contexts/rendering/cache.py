"""
Shared compiler cache directories.

Two persistent directories live under one cache root and are shared by every
job:
    {cache_root}/package-cache/   Tectonic's downloaded support packages (TECTONIC_CACHE_DIR)
    {cache_root}/aux-cache/       Auxiliary resources such as fonts (XDG_CACHE_HOME)

They are never removed implicitly; only clear() deletes them, and it recreates
them empty straight away.
"""

import os
import shutil
from pathlib import Path
from typing import Dict, List

from quill.contexts.rendering.logger import _log_debug, _log_info, _log_warning
from quill.contexts.rendering.models import DirectoryStatus, SharedCache

PACKAGE_CACHE_NAME = "package-cache"
AUX_CACHE_NAME = "aux-cache"


def directory_size(path: Path) -> int:
    """
    Total size in bytes of all files below path.

    Unreadable entries are skipped and a missing directory counts as 0;
    absence is a normal state, not an error. Symlinks are not followed.
    """
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path, onerror=lambda _err: None):
        for filename in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, filename)).st_size
            except OSError:
                continue
    return total


class CacheDirectoryManager:
    """Owns the package and auxiliary cache directories under one root."""

    def __init__(self, cache_root: Path):
        self.cache_root = Path(cache_root)

    @property
    def package_cache_dir(self) -> Path:
        return self.cache_root / PACKAGE_CACHE_NAME

    @property
    def aux_cache_dir(self) -> Path:
        return self.cache_root / AUX_CACHE_NAME

    def directories(self) -> Dict[str, Path]:
        return {
            PACKAGE_CACHE_NAME: self.package_cache_dir,
            AUX_CACHE_NAME: self.aux_cache_dir,
        }

    def shared_cache(self) -> SharedCache:
        return SharedCache(package_cache_dir=self.package_cache_dir, aux_cache_dir=self.aux_cache_dir)

    def ensure_directories(self) -> None:
        """Create both cache directories if missing (idempotent)."""
        for path in self.directories().values():
            path.mkdir(parents=True, exist_ok=True)

    def inspect(self) -> List[DirectoryStatus]:
        """Existence and recursive size of each managed directory."""
        return [
            DirectoryStatus(
                name=name,
                path=path,
                exists=path.is_dir(),
                size_bytes=directory_size(path),
            )
            for name, path in self.directories().items()
        ]

    def clear(self) -> List[Dict]:
        """
        Delete and recreate every managed directory.

        Each directory is handled independently so a failure on one does not
        mask success on the other.

        Returns:
            One {"directory", "success", "error"} dict per directory
        """
        results = []
        for name, path in self.directories().items():
            try:
                if path.exists():
                    shutil.rmtree(path)
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                _log_warning(f"Failed to clear {name} at {path}: {e}")
                results.append({"directory": str(path), "success": False, "error": str(e)})
            else:
                _log_debug(f"Cleared {name} at {path}")
                results.append({"directory": str(path), "success": True, "error": None})

        cleared = sum(1 for r in results if r["success"])
        _log_info(f"Cache clear finished: {cleared}/{len(results)} directories cleared")
        return results
