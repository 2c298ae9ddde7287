import json
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from planforge.errors import PersistenceError
from planforge.library.merge import merge_definition
from planforge.library.renderer import PageRenderer, module_name
from planforge.library.store import FileStore, compute_hash
from planforge.models.page import ActionMethod, Locator, PageObjectDefinition

logger = logging.getLogger(__name__)


class ObjectLibrary:
    """
    Page-object definitions persisted as `<pages_dir>/<PageName>.json`, with a
    rendered `<pages_dir>/<page_name>.py` module next to each.

    Mutation is serialized per page name; pages are independent of each other.
    """

    def __init__(self, store: FileStore, pages_dir: str = "pages", renderer: Optional[PageRenderer] = None):
        self.store = store
        self.pages_dir = pages_dir
        self.renderer = renderer or PageRenderer()
        self._definitions: Dict[str, PageObjectDefinition] = {}
        self._hashes: Dict[str, Optional[str]] = {}
        self._dirty = set()
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _json_path(self, page_name: str) -> str:
        return f"{self.pages_dir}/{page_name}.json"

    def _module_path(self, page_name: str) -> str:
        return f"{self.pages_dir}/{module_name(page_name)}.py"

    def _lock_for(self, page_name: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(page_name)
            if lock is None:
                lock = self._locks[page_name] = threading.RLock()
            return lock

    def discover(self) -> List[str]:
        """Page names that already have a persisted definition."""
        return [name[:-len(".json")] for name in self.store.list(self.pages_dir, ".json")]

    def get(self, page_name: str) -> Optional[PageObjectDefinition]:
        return self._definitions.get(page_name)

    def resolve(self, page_names: Iterable[str], reload: bool = False) -> Dict[str, PageObjectDefinition]:
        """
        Returns a definition for every requested page: persisted ones are loaded
        unchanged, missing ones start out empty.
        """
        resolved = {}
        for name in page_names:
            with self._lock_for(name):
                if reload or name not in self._definitions:
                    self._load(name)
                resolved[name] = self._definitions[name]
        return resolved

    def _load(self, page_name: str):
        content = self.store.read(self._json_path(page_name))
        if content is None:
            logger.debug("No definition for %s, starting empty", page_name)
            definition = PageObjectDefinition(name=page_name)
        else:
            try:
                definition = PageObjectDefinition(**json.loads(content))
            except ValueError as e:
                raise PersistenceError(
                    f"{self._json_path(page_name)} is not a valid page definition: {e}",
                    path=self.store.path(self._json_path(page_name)),
                ) from e
            if definition.name != page_name:
                raise PersistenceError(
                    f"{self._json_path(page_name)} defines '{definition.name}', expected '{page_name}'",
                    path=self.store.path(self._json_path(page_name)),
                )
            logger.debug("Loaded %s (%d locators, %d methods)", page_name, len(definition.locators), len(definition.actions))
        self._definitions[page_name] = definition
        self._hashes[page_name] = compute_hash(content) if content is not None else None
        self._dirty.discard(page_name)

    def extend(
        self,
        page_name: str,
        new_locators: Iterable[Locator] = (),
        new_actions: Iterable[ActionMethod] = (),
        url: Optional[str] = None,
    ) -> PageObjectDefinition:
        """
        Adds the entries whose names are not on the page yet. Extending twice
        with the same entries changes nothing the second time.

        Raises ConflictError when a name exists with a different definition.
        """
        with self._lock_for(page_name):
            if page_name not in self._definitions:
                self._load(page_name)
            merged, changed = merge_definition(self._definitions[page_name], new_locators, new_actions, url=url)
            if changed:
                self._definitions[page_name] = merged
                self._dirty.add(page_name)
                logger.info("Extended %s: %d locators, %d methods", page_name, len(merged.locators), len(merged.actions))
            return merged

    def persist(self, page_names: Optional[Iterable[str]] = None, extra_files: Optional[Dict[str, str]] = None):
        """
        Writes dirty definitions and their page modules, together with
        `extra_files` (relative path -> content), as one unit: either all of
        them land on disk or none do.

        Raises PersistenceError when a target cannot be written or a definition
        was changed on disk since it was resolved.
        """
        names = sorted(set(page_names) if page_names is not None else set(self._dirty))
        with self._locked(names):
            pending = [name for name in names if name in self._dirty]
            for name in pending:
                on_disk = self.store.content_hash(self._json_path(name))
                if on_disk != self._hashes.get(name):
                    raise PersistenceError(
                        f"{self._json_path(name)} changed on disk since it was loaded; resolve it again",
                        path=self.store.path(self._json_path(name)),
                    )

            files: Dict[str, str] = {}
            contents: Dict[str, str] = {}
            for name in pending:
                definition = self._definitions[name]
                contents[name] = json.dumps(definition.model_dump(), indent=2, ensure_ascii=False) + "\n"
                files[self._module_path(name)] = self.renderer.render(definition)
                files[self._json_path(name)] = contents[name]
            files.update(extra_files or {})
            if not files:
                return
            self.store.write_all(files)

            for name in pending:
                self._hashes[name] = compute_hash(contents[name])
                self._dirty.discard(name)
                logger.info("Saved %s to %s", name, self.store.path(self._json_path(name)))

    @contextmanager
    def _locked(self, page_names: List[str]) -> Iterator[None]:
        acquired = []
        try:
            # Sorted acquisition keeps concurrent transactions deadlock free
            for name in sorted(set(page_names)):
                lock = self._lock_for(name)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    @contextmanager
    def transaction(self, page_names: Iterable[str]) -> Iterator["ObjectLibrary"]:
        """
        Holds the locks of the given pages for an extend-then-persist sequence.
        Any exception, cancellation included, rolls the pages back to their
        state at entry.
        """
        names = sorted(set(page_names))
        with self._locked(names):
            snapshot = {
                name: (self._definitions.get(name), self._hashes.get(name), name in self._dirty)
                for name in names
            }
            try:
                yield self
            except BaseException:
                for name, (definition, digest, dirty) in snapshot.items():
                    if definition is None:
                        self._definitions.pop(name, None)
                        self._hashes.pop(name, None)
                    else:
                        self._definitions[name] = definition
                        self._hashes[name] = digest
                    if dirty:
                        self._dirty.add(name)
                    else:
                        self._dirty.discard(name)
                logger.debug("Rolled back %s", ", ".join(names))
                raise
