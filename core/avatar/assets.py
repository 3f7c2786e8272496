"""
Asset Lookup - Model and animation files on disk

@.architecture
Incoming: core/avatar/tools.py, core/context.py --- {relative asset paths, AssetSettings}
Processing: exists(), list(), url_for(), _resolve() --- {3 jobs: containment_check, directory_listing, url_building}
Outgoing: core/avatar/tools.py --- {bool, List[str] file names, public URL paths}

Paths are relative to the configured directory. A path that resolves outside
that directory is treated as missing.
"""

import logging
from pathlib import Path
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


class AssetLocator(Protocol):
    """What the tool handler needs from asset storage."""

    def exists(self, path: str) -> bool:
        ...

    def list(self) -> List[str]:
        ...

    def url_for(self, path: str) -> str:
        ...


class LocalAssetLocator:
    """
    Asset files of one kind (models or animations) in a local directory.

    Args:
        root: Directory holding the files
        extension: Suffix used to filter listings (".vrm", ".vrma")
        url_prefix: Public URL prefix the viewer loads files from
    """

    def __init__(self, root: Path, extension: str, url_prefix: str):
        self.root = Path(root)
        self.extension = extension
        self.url_prefix = url_prefix.rstrip("/")

    def _resolve(self, path: str) -> Optional[Path]:
        root = self.root.resolve()
        try:
            candidate = (root / path).resolve()
        except (ValueError, OSError):
            # Unresolvable names (embedded NUL, loops) count as missing
            return None
        if candidate == root or not candidate.is_relative_to(root):
            return None
        return candidate

    def exists(self, path: str) -> bool:
        candidate = self._resolve(path)
        return candidate is not None and candidate.is_file()

    def list(self) -> List[str]:
        """File names in the directory with the expected extension (sorted)."""
        try:
            return sorted(
                entry.name
                for entry in self.root.iterdir()
                if entry.is_file() and entry.name.endswith(self.extension)
            )
        except OSError as e:
            logger.warning(f"Cannot list {self.root}: {e}")
            return []

    def url_for(self, path: str) -> str:
        return f"{self.url_prefix}/{path}"
