"""
Catalog engine: a reference SwordEngine over an in-memory module catalog.

The catalog describes remote repositories and the modules they offer,
including verse text for searching. It can be passed as a mapping or
loaded from a JSON or YAML file:

    repositories:
      CrossWire:
        modules:
          KJV:
            description: King James Version (1769)
            language: en
            verses:
              - {book: Gen, chapter: 1, verse: 1, text: "In the beginning ..."}
    installed: [KJV]

All asynchronous primitives run on a single worker thread and call their
callbacks from it, the way the native engine does. Each submitted install
or search gets its own cancel token, so a cancel only reaches the job it
was meant for.

Installs and uninstalls change in-memory state only. The catalog's
``installed`` list is the only local state that outlives the process.
"""

import json
import logging
import re
import threading
import time
from collections import deque
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import yaml

from swordgate.core.engine.adapter import (
    INSTALL_CANCELLED,
    INSTALL_FAILED,
    INSTALL_OK,
    register_engine,
)
from swordgate.core.exceptions import NotFoundError
from swordgate.core.models import (
    Auto,
    ModuleInfo,
    ProgressEvent,
    RepositoryRef,
    SearchResult,
    SearchScope,
    SearchType,
)

logger = logging.getLogger(__name__)

OLD_TESTAMENT_BOOKS = frozenset(
    "Gen Exod Lev Num Deut Josh Judg Ruth 1Sam 2Sam 1Kgs 2Kgs 1Chr 2Chr Ezra Neh "
    "Esth Job Ps Prov Eccl Song Isa Jer Lam Ezek Dan Hos Joel Amos Obad Jonah Mic "
    "Nah Hab Zeph Hag Zech Mal".split()
)
NEW_TESTAMENT_BOOKS = frozenset(
    "Matt Mark Luke John Acts Rom 1Cor 2Cor Gal Eph Phil Col 1Thess 2Thess 1Tim "
    "2Tim Titus Phlm Heb Jas 1Pet 2Pet 1John 2John 3John Jude Rev".split()
)

UNLOCK_INVALID_PARAMETER = -1
UNLOCK_NO_CIPHER_SECTION = -2
UNLOCK_MODULE_NOT_FOUND = -3


def load_catalog(path: Path) -> dict[str, Any]:
    """
    Load a catalog file.

    Args:
        path: A ``.json``, ``.yaml`` or ``.yml`` file

    Returns:
        The parsed catalog mapping

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file does not contain a mapping
    """
    with path.open() as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Catalog {path} must contain a mapping, got {type(data).__name__}")
    return data


def _in_scope(book: str, scope: SearchScope) -> bool:
    if scope is SearchScope.OLD_TESTAMENT:
        return book in OLD_TESTAMENT_BOOKS
    if scope is SearchScope.NEW_TESTAMENT:
        return book in NEW_TESTAMENT_BOOKS
    return True


def _verse_matcher(
    term: str,
    search_type: SearchType,
    case_sensitive: bool,
    word_boundary_filter: bool,
) -> Callable[[Mapping[str, Any], str], bool]:
    flags = 0 if case_sensitive else re.IGNORECASE

    def pattern(fragment: str) -> re.Pattern[str]:
        escaped = re.escape(fragment)
        if word_boundary_filter:
            escaped = rf"\b{escaped}\b"
        return re.compile(escaped, flags)

    if search_type is SearchType.STRONGS_NUMBER:
        return lambda verse, text: term in verse.get("strongs", ())
    if search_type is SearchType.MULTI_WORD:
        patterns = [pattern(word) for word in term.split()]
        return lambda verse, text: bool(patterns) and all(p.search(text) for p in patterns)
    phrase = pattern(term)
    return lambda verse, text: phrase.search(text) is not None


class CancelTokens:
    """
    One cancel event per submitted job of a kind, oldest first.

    The worker runs jobs in submission order, so the head of the queue is
    the running job, or the next to run when none is. A cancel only ever
    reaches that job, and a job leaves the queue once it has reported.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: deque[threading.Event] = deque()

    def issue(self) -> threading.Event:
        event = threading.Event()
        with self._lock:
            self._events.append(event)
        return event

    def retire(self, event: threading.Event) -> None:
        with self._lock:
            if event in self._events:
                self._events.remove(event)

    def cancel_current(self) -> bool:
        with self._lock:
            if not self._events:
                return False
            self._events[0].set()
            return True


@register_engine("catalog")
class CatalogEngine:
    """
    SwordEngine backed by a module catalog.

    Args:
        catalog: Catalog mapping (takes precedence over ``catalog_path``)
        catalog_path: JSON/YAML catalog file, re-read on forced config updates
        step_delay: Seconds to sleep per install step (simulates download time)
        install_steps: Number of progress steps an install reports
        version: Value reported by ``get_version``
    """

    def __init__(
        self,
        catalog: Mapping[str, Any] | None = None,
        catalog_path: str | Path | None = None,
        step_delay: float = 0.0,
        install_steps: int = 10,
        version: str = "1.8.900-catalog",
    ) -> None:
        self.catalog_path = Path(catalog_path) if catalog_path is not None else None
        if catalog is None and self.catalog_path is not None:
            catalog = load_catalog(self.catalog_path)
        self.step_delay = step_delay
        self.install_steps = max(1, install_steps)
        self.version = version

        self._state_lock = threading.Lock()
        self._repositories: dict[str, dict[str, dict[str, Any]]] = {}
        self._local: dict[str, tuple[str, dict[str, Any]]] = {}
        self._config_loaded = False
        self._install_tokens = CancelTokens()
        self._search_tokens = CancelTokens()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="swordgate-engine")
        self._apply_catalog(catalog or {})

    @property
    def name(self) -> str:
        return "catalog"

    def close(self) -> None:
        """Stop the worker thread after pending operations finish."""
        self._executor.shutdown(wait=True)

    def _apply_catalog(self, catalog: Mapping[str, Any]) -> None:
        repositories: dict[str, dict[str, dict[str, Any]]] = {}
        for repo_name, repo in (catalog.get("repositories") or {}).items():
            repositories[str(repo_name)] = {
                str(code): dict(module) for code, module in (repo.get("modules") or {}).items()
            }
        with self._state_lock:
            self._repositories = repositories
            self._config_loaded = bool(repositories)
            for code in catalog.get("installed") or ():
                repo_name = self._find_repository(code)
                if repo_name is None:
                    logger.warning("Installed module %s is not offered by any repository", code)
                    continue
                self._local[code] = (repo_name, repositories[repo_name][code])

    # ------------------------------------------------------------------
    # Asynchronous primitives
    # ------------------------------------------------------------------

    def update_config(
        self,
        force_refresh: bool,
        on_progress: Callable[[ProgressEvent], None],
        on_done: Callable[[Any], None],
    ) -> None:
        self._executor.submit(self._run_update_config, force_refresh, on_progress, on_done)

    def _run_update_config(self, force_refresh: bool, on_progress, on_done) -> None:
        try:
            if force_refresh and self.catalog_path is not None:
                catalog = load_catalog(self.catalog_path)
                installed = {"installed": list(self._local)}
                self._apply_catalog({**catalog, **installed})
            names = self.get_repo_names()
            status: dict[str, bool] = {}
            for index, repo_name in enumerate(names, start=1):
                status[repo_name] = True
                on_progress(ProgressEvent(total_percent=index * 100 // len(names)))
            with self._state_lock:
                self._config_loaded = True
            on_done({"result": True, **status})
        except Exception:
            logger.exception("Repository config update failed")
            on_done({"result": False})

    def install(
        self,
        module_code: str,
        repository: RepositoryRef,
        on_progress: Callable[[ProgressEvent], None],
        on_done: Callable[[Any], None],
    ) -> None:
        cancelled = self._install_tokens.issue()
        self._executor.submit(self._run_install, module_code, repository, on_progress, on_done, cancelled)

    def _run_install(
        self,
        module_code: str,
        repository: RepositoryRef,
        on_progress,
        on_done,
        cancelled: threading.Event,
    ) -> None:
        try:
            repo_name = self._resolve_repository(module_code, repository)
            module = self._repositories.get(repo_name or "", {}).get(module_code)
            if module is None:
                logger.error("Did not find module %s in repository %s", module_code, repository)
                on_done(INSTALL_FAILED)
                return

            on_progress(ProgressEvent(message=f"Downloading {module_code} from {repo_name}"))
            for step in range(1, self.install_steps + 1):
                if cancelled.is_set():
                    logger.info("Installation of %s cancelled", module_code)
                    on_done(INSTALL_CANCELLED)
                    return
                if self.step_delay:
                    time.sleep(self.step_delay)
                percent = step * 100 // self.install_steps
                on_progress(ProgressEvent(total_percent=percent, file_percent=percent))

            with self._state_lock:
                self._local[module_code] = (repo_name, module)
            logger.info("Installed module: %s", module_code)
            on_done(INSTALL_OK)
        except Exception:
            logger.exception("Error installing module: %s", module_code)
            on_done(INSTALL_FAILED)
        finally:
            self._install_tokens.retire(cancelled)

    def uninstall(self, module_code: str, repository: RepositoryRef, on_done: Callable[[Any], None]) -> None:
        self._executor.submit(self._run_uninstall, module_code, on_done)

    def _run_uninstall(self, module_code: str, on_done) -> None:
        with self._state_lock:
            removed = self._local.pop(module_code, None) is not None
        if not removed:
            logger.error("Error uninstalling module: %s", module_code)
        on_done(removed)

    def cancel_installation(self) -> None:
        if not self._install_tokens.cancel_current():
            logger.debug("No installation to cancel")

    def search(
        self,
        module_code: str,
        term: str,
        search_type: str,
        scope: str,
        case_sensitive: bool,
        extended_boundaries: bool,
        word_boundary_filter: bool,
        on_progress: Callable[[ProgressEvent], None],
        on_done: Callable[[Any], None],
    ) -> None:
        terminated = self._search_tokens.issue()
        self._executor.submit(
            self._run_search,
            module_code,
            term,
            SearchType(search_type),
            SearchScope(scope),
            case_sensitive,
            extended_boundaries,
            word_boundary_filter,
            on_progress,
            on_done,
            terminated,
        )

    def _run_search(
        self,
        module_code: str,
        term: str,
        search_type: SearchType,
        scope: SearchScope,
        case_sensitive: bool,
        extended_boundaries: bool,
        word_boundary_filter: bool,
        on_progress,
        on_done,
        terminated: threading.Event,
    ) -> None:
        try:
            outcome = self._search_verses(
                module_code,
                term,
                search_type,
                scope,
                case_sensitive,
                extended_boundaries,
                word_boundary_filter,
                on_progress,
                terminated,
            )
        except Exception:
            logger.exception("Error searching module: %s", module_code)
            outcome = INSTALL_FAILED
        try:
            on_done(outcome)
        finally:
            self._search_tokens.retire(terminated)

    def _search_verses(
        self,
        module_code: str,
        term: str,
        search_type: SearchType,
        scope: SearchScope,
        case_sensitive: bool,
        extended_boundaries: bool,
        word_boundary_filter: bool,
        on_progress,
        terminated: threading.Event,
    ) -> list[SearchResult] | int:
        with self._state_lock:
            entry = self._local.get(module_code)
        if entry is None:
            logger.error("Search on missing local module %s", module_code)
            return INSTALL_FAILED

        verses = entry[1].get("verses") or []
        matches = _verse_matcher(term, search_type, case_sensitive, word_boundary_filter)
        results: list[SearchResult] = []
        last_percent = -1
        for index, verse in enumerate(verses):
            if terminated.is_set():
                logger.info("Search of %s terminated", module_code)
                return INSTALL_CANCELLED
            percent = (index + 1) * 100 // len(verses)
            if percent // 10 != last_percent // 10:
                on_progress(ProgressEvent(total_percent=percent))
                last_percent = percent

            if not _in_scope(verse.get("book", ""), scope):
                continue
            text = verse.get("text", "")
            if extended_boundaries and index + 1 < len(verses):
                text = f"{text} {verses[index + 1].get('text', '')}"
            if matches(verse, text):
                results.append(self._search_result(module_code, index, verse))

        return results

    @staticmethod
    def _search_result(module_code: str, index: int, verse: Mapping[str, Any]) -> SearchResult:
        book = verse.get("book", "")
        chapter = int(verse.get("chapter", 0))
        number = int(verse.get("verse", 0))
        return SearchResult(
            module_code=module_code,
            reference=f"{book}.{chapter}.{number}",
            book=book,
            chapter=chapter,
            verse=number,
            absolute_verse_number=index + 1,
            content=verse.get("text", ""),
        )

    def terminate_search(self) -> None:
        if not self._search_tokens.cancel_current():
            logger.debug("No search to terminate")

    # ------------------------------------------------------------------
    # Synchronous accessors
    # ------------------------------------------------------------------

    def _find_repository(self, module_code: str) -> str | None:
        for repo_name, modules in self._repositories.items():
            if module_code in modules:
                return repo_name
        return None

    def _resolve_repository(self, module_code: str, repository: RepositoryRef) -> str | None:
        if isinstance(repository, Auto):
            return self._find_repository(module_code)
        return repository if repository in self._repositories else None

    def _repo_module(self, module_code: str, repository: RepositoryRef) -> tuple[str, dict[str, Any]]:
        repo_name = self._resolve_repository(module_code, repository)
        module = self._repositories.get(repo_name or "", {}).get(module_code)
        if module is None:
            raise NotFoundError("module", module_code, repository=repr(repository))
        return repo_name, module

    def _module_info(self, module_code: str, repo_name: str, module: Mapping[str, Any]) -> ModuleInfo:
        return ModuleInfo(
            name=module_code,
            description=module.get("description", ""),
            language=module.get("language", ""),
            repository=repo_name,
            module_type=module.get("module_type", "Biblical Texts"),
            version=str(module.get("version", "")),
            size=len(module.get("verses") or []),
            locked="cipher_key" in module,
            in_user_dir=module_code in self._local,
        )

    def describe(self, module_code: str, repository: RepositoryRef) -> str:
        _, module = self._repo_module(module_code, repository)
        return module.get("description", "")

    def is_available(self, module_code: str, repository: RepositoryRef) -> bool:
        repo_name = self._resolve_repository(module_code, repository)
        return module_code in self._repositories.get(repo_name or "", {})

    def lookup_repo_module(self, module_code: str, repository: RepositoryRef) -> ModuleInfo:
        repo_name, module = self._repo_module(module_code, repository)
        return self._module_info(module_code, repo_name, module)

    def lookup_local_module(self, module_code: str) -> ModuleInfo | None:
        with self._state_lock:
            entry = self._local.get(module_code)
        if entry is None:
            return None
        return self._module_info(module_code, *entry)

    def repository_config_existing(self) -> bool:
        return self._config_loaded

    def get_repo_names(self) -> list[str]:
        return list(self._repositories)

    def get_all_repo_modules(self, repository: str) -> list[ModuleInfo]:
        if repository not in self._repositories:
            raise NotFoundError("repository", repository)
        return [
            self._module_info(code, repository, module)
            for code, module in self._repositories[repository].items()
        ]

    def get_repo_languages(self, repository: str) -> list[str]:
        modules = self.get_all_repo_modules(repository)
        return sorted({module.language for module in modules if module.language})

    def get_all_local_modules(self) -> list[ModuleInfo]:
        with self._state_lock:
            entries = list(self._local.items())
        return [self._module_info(code, repo_name, module) for code, (repo_name, module) in entries]

    def is_module_in_user_dir(self, module_code: str) -> bool:
        return module_code in self._local

    def save_module_unlock_key(self, module_code: str, key: str) -> int:
        if not module_code or not key:
            return UNLOCK_INVALID_PARAMETER
        with self._state_lock:
            entry = self._local.get(module_code)
            if entry is None:
                return UNLOCK_MODULE_NOT_FOUND
            module = entry[1]
            if "cipher_key" not in module:
                return UNLOCK_NO_CIPHER_SECTION
            module["cipher_key"] = key
        return 0

    def get_version(self) -> str:
        return self.version


