"""
Engine adapter protocol and registry.

This module defines the SwordEngine protocol: typed handles to the
callback-based primitives of the module/text engine. It carries no logic.
Engines are registered by name so the interface can be built from
configuration.

Callback contract:
    - Callbacks may be invoked from any thread; the async bridge moves
      them onto the owning event loop in emission order.
    - ``install`` completes with an int status: 0 ok, -1 failure,
      -9 cancelled/interrupted.
    - ``search`` completes with the list of results, or an int status
      (-9 when terminated, anything else a failure).
    - ``uninstall`` completes with a bool.
    - ``update_config`` completes with a bool or a status mapping whose
      ``result`` key holds overall success.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from swordgate.core.models import ModuleInfo, ProgressEvent, RepositoryRef

DoneCallback = Callable[[Any], None]

INSTALL_OK = 0
INSTALL_FAILED = -1
INSTALL_CANCELLED = -9


@runtime_checkable
class SwordEngine(Protocol):
    """
    Protocol for engine implementations.

    Asynchronous primitives report through ``on_progress``/``on_done``
    callbacks and return nothing. Accessors return directly or raise.
    """

    @property
    def name(self) -> str:
        """Engine identifier (e.g. 'catalog')."""
        ...

    def update_config(
        self,
        force_refresh: bool,
        on_progress: Callable[[ProgressEvent], None],
        on_done: DoneCallback,
    ) -> None:
        """Refresh the remote repository configuration."""
        ...

    def install(
        self,
        module_code: str,
        repository: RepositoryRef,
        on_progress: Callable[[ProgressEvent], None],
        on_done: DoneCallback,
    ) -> None:
        """Install a module, from ``repository`` or wherever it is found."""
        ...

    def uninstall(self, module_code: str, repository: RepositoryRef, on_done: DoneCallback) -> None:
        """Remove a locally installed module."""
        ...

    def cancel_installation(self) -> None:
        """Signal the currently running install, if any."""
        ...

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
        on_done: DoneCallback,
    ) -> None:
        """Run a full-text search over a local module."""
        ...

    def terminate_search(self) -> None:
        """Signal the currently running search, if any."""
        ...

    def describe(self, module_code: str, repository: RepositoryRef) -> str:
        """Return the module description; raises NotFoundError when absent."""
        ...

    def is_available(self, module_code: str, repository: RepositoryRef) -> bool:
        """Whether the module can be installed from the repository."""
        ...

    def lookup_repo_module(self, module_code: str, repository: RepositoryRef) -> ModuleInfo:
        """Return repository metadata; raises NotFoundError when absent."""
        ...

    def lookup_local_module(self, module_code: str) -> ModuleInfo | None:
        """Return local module metadata, or None when not installed."""
        ...

    def repository_config_existing(self) -> bool:
        ...

    def get_repo_names(self) -> list[str]:
        ...

    def get_all_repo_modules(self, repository: str) -> list[ModuleInfo]:
        ...

    def get_repo_languages(self, repository: str) -> list[str]:
        ...

    def get_all_local_modules(self) -> list[ModuleInfo]:
        ...

    def is_module_in_user_dir(self, module_code: str) -> bool:
        ...

    def save_module_unlock_key(self, module_code: str, key: str) -> int:
        """Store an unlock key; returns 0 or a negative engine code."""
        ...

    def get_version(self) -> str:
        ...


# Engine registry
_engines: dict[str, Callable[..., SwordEngine]] = {}


def register_engine(
    engine_type: str,
) -> Callable[[Callable[..., SwordEngine]], Callable[..., SwordEngine]]:
    """
    Decorator to register an engine implementation.

    Usage:
        @register_engine('catalog')
        class CatalogEngine:
            ...

    Args:
        engine_type: Engine identifier used in configuration

    Returns:
        Decorator function
    """

    def decorator(engine_class: Callable[..., SwordEngine]) -> Callable[..., SwordEngine]:
        _engines[engine_type] = engine_class
        return engine_class

    return decorator


def get_engine(engine_type: str, **options: Any) -> SwordEngine:
    """
    Instantiate a registered engine.

    Args:
        engine_type: Engine identifier ('catalog', ...)
        **options: Passed to the engine constructor

    Raises:
        ValueError: If the engine type is not registered
    """
    engine_class = _engines.get(engine_type)
    if engine_class is None:
        raise ValueError(
            f"Engine '{engine_type}' not registered. "
            f"Available engines: {', '.join(_engines.keys())}"
        )
    return engine_class(**options)


def list_engines() -> list[str]:
    """List all registered engine types."""
    return list(_engines.keys())


def is_engine_available(engine_type: str) -> bool:
    """Check if an engine type is registered."""
    return engine_type in _engines
