import hashlib
import os
from typing import Dict, Iterable, List, Optional, Tuple

from planforge.errors import PersistenceError


def compute_hash(content: str) -> str:
    """Return a stable hash for given content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FileStore:
    """
    File system collaborator. Paths are relative to `root`.
    OS failures on write are reported as PersistenceError.
    """

    def __init__(self, root: str = "."):
        self.root = root

    def path(self, relative: str) -> str:
        return os.path.join(self.root, relative)

    def exists(self, relative: str) -> bool:
        return os.path.exists(self.path(relative))

    def read(self, relative: str) -> Optional[str]:
        full = self.path(relative)
        if not os.path.exists(full):
            return None
        with open(full, 'r', encoding='utf-8') as f:
            return f.read()

    def content_hash(self, relative: str) -> Optional[str]:
        content = self.read(relative)
        return compute_hash(content) if content is not None else None

    def list(self, relative_dir: str, suffix: str = "") -> List[str]:
        full = self.path(relative_dir)
        if not os.path.isdir(full):
            return []
        return sorted(name for name in os.listdir(full) if name.endswith(suffix))

    def write(self, relative: str, content: str):
        self.write_all({relative: content})

    def write_all(self, files: Dict[str, str]):
        """
        Writes several files as one unit: every file is staged next to its
        target first, and targets are only replaced once all stages exist.
        On failure the previous contents are restored.
        """
        staged: List[Tuple[str, str]] = []
        current = None
        try:
            for relative, content in files.items():
                current = self.path(relative)
                folder = os.path.dirname(current)
                if folder and not os.path.isdir(folder):
                    os.makedirs(folder, exist_ok=True)
                tmp = f"{current}.tmp"
                with open(tmp, 'w', encoding='utf-8') as f:
                    f.write(content)
                staged.append((tmp, current))
        except OSError as e:
            self._discard(tmp for tmp, _ in staged)
            raise PersistenceError(f"cannot write {current}: {e}", path=current) from e

        previous = {full: self._read_full(full) for _, full in staged}
        replaced = []
        try:
            for tmp, full in staged:
                os.replace(tmp, full)
                replaced.append(full)
        except OSError as e:
            self._discard(tmp for tmp, full in staged if full not in replaced)
            self._restore(replaced, previous)
            raise PersistenceError(f"cannot write {full}: {e}", path=full) from e

    @staticmethod
    def _read_full(full: str) -> Optional[str]:
        if not os.path.exists(full):
            return None
        with open(full, 'r', encoding='utf-8') as f:
            return f.read()

    @staticmethod
    def _discard(paths: Iterable[str]):
        for path in paths:
            if os.path.exists(path):
                os.remove(path)

    @staticmethod
    def _restore(replaced: List[str], previous: Dict[str, Optional[str]]):
        for full in replaced:
            if previous[full] is None:
                os.remove(full)
            else:
                with open(full, 'w', encoding='utf-8') as f:
                    f.write(previous[full])
