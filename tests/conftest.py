"""
Pytest configuration and shared fixtures.

Provides a scripted fake engine whose callbacks tests drive by hand, a small
module catalog with searchable verse text, and config isolation helpers.
"""

import json
from collections.abc import Callable
from typing import Any

import pytest

from swordgate.core.config import clear_cache
from swordgate.core.engine import CatalogEngine
from swordgate.core.exceptions import NotFoundError
from swordgate.core.interface import SwordInterface
from swordgate.core.models import Auto, ModuleInfo

# ==============================================================================
# Fake Engine
# ==============================================================================


class ScriptedEngine:
    """
    Engine fake that records calls and never calls back on its own.

    Tests complete operations explicitly with ``emit_progress`` and
    ``finish``. Callbacks are invoked on the calling thread.
    """

    name = "scripted"

    def __init__(self, repositories: tuple[str, ...] = ("CrossWire", "Xiphos")) -> None:
        self.repositories = list(repositories)
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.callbacks: dict[str, tuple[Callable[[Any], None] | None, Callable[[Any], None]]] = {}
        self.raise_on: dict[str, Exception] = {}
        self.cancel_installation_calls = 0
        self.terminate_search_calls = 0
        self.repo_lookups = 0
        self.unlock_code = 0
        self.modules = {
            "CrossWire": {
                "KJV": ModuleInfo(name="KJV", description="King James Version", language="en", repository="CrossWire"),
            },
            "Xiphos": {
                "ASV": ModuleInfo(name="ASV", description="American Standard Version", language="en", repository="Xiphos"),
            },
        }
        self.local: dict[str, ModuleInfo] = {}

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.raise_on:
            raise self.raise_on[operation]

    def calls_to(self, operation: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == operation]

    # Driving helpers

    def emit_progress(self, operation: str, event: Any) -> None:
        on_progress, _ = self.callbacks[operation]
        on_progress(event)

    def finish(self, operation: str, outcome: Any) -> None:
        _, on_done = self.callbacks[operation]
        on_done(outcome)

    # Asynchronous primitives

    def update_config(self, force_refresh, on_progress, on_done) -> None:
        self._record("update_config", force_refresh)
        self.callbacks["update_config"] = (on_progress, on_done)

    def install(self, module_code, repository, on_progress, on_done) -> None:
        self._record("install", module_code, repository)
        self.callbacks["install"] = (on_progress, on_done)

    def uninstall(self, module_code, repository, on_done) -> None:
        self._record("uninstall", module_code, repository)
        self.callbacks["uninstall"] = (None, on_done)

    def cancel_installation(self) -> None:
        self.cancel_installation_calls += 1

    def search(
        self,
        module_code,
        term,
        search_type,
        scope,
        case_sensitive,
        extended_boundaries,
        word_boundary_filter,
        on_progress,
        on_done,
    ) -> None:
        self._record(
            "search",
            module_code,
            term,
            search_type,
            scope,
            case_sensitive,
            extended_boundaries,
            word_boundary_filter,
        )
        self.callbacks["search"] = (on_progress, on_done)

    def terminate_search(self) -> None:
        self.terminate_search_calls += 1

    # Synchronous accessors

    def _lookup(self, module_code: str, repository: Any) -> ModuleInfo:
        if isinstance(repository, Auto):
            for modules in self.modules.values():
                if module_code in modules:
                    return modules[module_code]
        elif module_code in self.modules.get(repository, {}):
            return self.modules[repository][module_code]
        raise NotFoundError("module", module_code)

    def describe(self, module_code, repository) -> str:
        self._record("describe", module_code, repository)
        return self._lookup(module_code, repository).description

    def is_available(self, module_code, repository) -> bool:
        self._record("is_available", module_code, repository)
        try:
            self._lookup(module_code, repository)
        except NotFoundError:
            return False
        return True

    def lookup_repo_module(self, module_code, repository) -> ModuleInfo:
        self._record("lookup_repo_module", module_code, repository)
        return self._lookup(module_code, repository)

    def lookup_local_module(self, module_code) -> ModuleInfo | None:
        self._record("lookup_local_module", module_code)
        return self.local.get(module_code)

    def repository_config_existing(self) -> bool:
        return bool(self.repositories)

    def get_repo_names(self) -> list[str]:
        self.repo_lookups += 1
        return list(self.repositories)

    def get_all_repo_modules(self, repository) -> list[ModuleInfo]:
        if repository not in self.modules:
            raise NotFoundError("repository", repository)
        return list(self.modules[repository].values())

    def get_repo_languages(self, repository) -> list[str]:
        return sorted({m.language for m in self.get_all_repo_modules(repository)})

    def get_all_local_modules(self) -> list[ModuleInfo]:
        return list(self.local.values())

    def is_module_in_user_dir(self, module_code) -> bool:
        return module_code in self.local

    def save_module_unlock_key(self, module_code, key) -> int:
        self._record("save_module_unlock_key", module_code, key)
        return self.unlock_code

    def get_version(self) -> str:
        return "1.9.0-scripted"


@pytest.fixture
def scripted_engine():
    """Provide a fresh ScriptedEngine."""
    return ScriptedEngine()


@pytest.fixture
def scripted_sword(scripted_engine):
    """Provide a SwordInterface over the scripted engine."""
    return SwordInterface(scripted_engine)


@pytest.fixture
def progress_log():
    """Provide a list plus a progress callback that appends to it."""
    events: list[Any] = []
    return events, events.append


# ==============================================================================
# Catalog Fixtures
# ==============================================================================


def _verse(book: str, chapter: int, verse: int, text: str, *strongs: str) -> dict[str, Any]:
    return {"book": book, "chapter": chapter, "verse": verse, "text": text, "strongs": list(strongs)}


@pytest.fixture
def sample_catalog() -> dict[str, Any]:
    """
    Provide a small catalog.

    CrossWire offers KJV (installed) and LOCKED (installed, encrypted);
    Xiphos offers ASV (not installed). Five KJV verses contain "faith",
    one of them in the Old Testament.
    """
    return {
        "repositories": {
            "CrossWire": {
                "modules": {
                    "KJV": {
                        "description": "King James Version (1769) with Strongs Numbers",
                        "language": "en",
                        "version": "3.1",
                        "verses": [
                            _verse("Gen", 1, 1, "In the beginning God created the heaven and the earth.", "H7225", "H430"),
                            _verse(
                                "Gen",
                                15,
                                6,
                                "And he believed in the LORD; and he counted it to him for righteousness.",
                                "H539",
                            ),
                            _verse("Hab", 2, 4, "Behold, his soul which is lifted up is not upright in him: but the just shall live by his faith.", "H530"),
                            _verse(
                                "Rom",
                                5,
                                1,
                                "Therefore being justified by faith, we have peace with God through our Lord Jesus Christ:",
                                "G4102",
                            ),
                            _verse(
                                "1Cor",
                                13,
                                13,
                                "And now abideth faith, hope, charity, these three; but the greatest of these is charity.",
                                "G4102",
                                "G1680",
                                "G26",
                            ),
                            _verse(
                                "Heb",
                                11,
                                1,
                                "Now faith is the substance of things hoped for, the evidence of things not seen.",
                                "G4102",
                            ),
                            _verse("Jas", 2, 17, "Even so faith, if it hath not works, is dead, being alone.", "G4102"),
                        ],
                    },
                    "LOCKED": {
                        "description": "Encrypted test module",
                        "language": "de",
                        "cipher_key": "",
                        "verses": [_verse("John", 3, 16, "Also hat Gott die Welt geliebt.")],
                    },
                }
            },
            "Xiphos": {
                "modules": {
                    "ASV": {
                        "description": "American Standard Version (1901)",
                        "language": "en",
                        "verses": [_verse("Heb", 11, 1, "Now faith is assurance of things hoped for.")],
                    }
                }
            },
        },
        "installed": ["KJV", "LOCKED"],
    }


@pytest.fixture
def catalog_engine(sample_catalog):
    """Provide a CatalogEngine over the sample catalog."""
    engine = CatalogEngine(catalog=sample_catalog)
    yield engine
    engine.close()


@pytest.fixture
def catalog_sword(catalog_engine):
    """Provide a SwordInterface over the catalog engine."""
    return SwordInterface(catalog_engine)


@pytest.fixture
def catalog_file(tmp_path, sample_catalog):
    """Write the sample catalog to a JSON file."""
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(sample_catalog, indent=2))
    return path


# ==============================================================================
# Config Isolation
# ==============================================================================


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """
    Isolate config loading from the real user and project files.

    Points XDG_CONFIG_HOME at a temp dir, runs in an empty project dir and
    clears SWORDGATE_* variables and the config cache.
    """
    config_home = tmp_path / "xdg"
    config_home.mkdir()
    project = tmp_path / "project"
    project.mkdir()

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.chdir(project)
    for var in (
        "SWORDGATE_ENGINE",
        "SWORDGATE_CATALOG",
        "SWORDGATE_PREFER_REPOSITORY_FIRST",
        "SWORDGATE_LOG_LEVEL",
        "SWORDGATE_SEARCH_TYPE",
        "SWORDGATE_SEARCH_SCOPE",
    ):
        monkeypatch.delenv(var, raising=False)

    clear_cache()
    yield {"config_home": config_home, "project": project}
    clear_cache()
