"""
SwordInterface: the public facade.

Asynchronous operations (install, uninstall, search, repository config
update) return an awaitable OperationHandle and never raise; every failure
arrives as a rejected future. Synchronous accessors resolve their
arguments, call the engine directly and return or raise immediately.

Every interface instance owns its own exclusivity lock, so two instances
never block each other's searches.

Example:
    >>> sword = SwordInterface.from_config()
    >>> await sword.update_repository_config()
    >>> await sword.install_module("KJV", "CrossWire", print)
    >>> results = await sword.get_module_search_results("KJV", "faith")
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from swordgate.core.bridge import AsyncBridge, OperationHandle
from swordgate.core.cancellation import CancellationController
from swordgate.core.config import SwordgateConfig, load_config
from swordgate.core.engine import SwordEngine, get_engine
from swordgate.core.exceptions import UnlockKeyError
from swordgate.core.guard import ExclusivityGuard, ExclusivityLock
from swordgate.core.models import ModuleInfo, OperationKind
from swordgate.core.signature import CallShape, SignatureResolver

logger = logging.getLogger(__name__)


class SwordInterface:
    """
    Public facade over one engine.

    Args:
        engine: Engine adapter to drive
        prefer_repository_first: Break call-shape ties in favour of
            ``(repository, module)`` forms
        search_defaults: Defaults for search options left unset by callers
            (keys: search_type, scope, case_sensitive, extended_boundaries,
            word_boundary_filter)
        shapes: Replacement call-shape table
        lock: Exclusivity lock for searches (a fresh one by default)
        loop: Event loop futures are bound to (defaults to the running loop)
    """

    def __init__(
        self,
        engine: SwordEngine,
        *,
        prefer_repository_first: bool = False,
        search_defaults: Mapping[str, Any] | None = None,
        shapes: Mapping[OperationKind, Sequence[CallShape]] | None = None,
        lock: ExclusivityLock | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.engine = engine
        self.lock = lock if lock is not None else ExclusivityLock()
        self.resolver = SignatureResolver(
            shapes=shapes,
            repository_names=engine.get_repo_names,
            prefer_repository_first=prefer_repository_first,
            search_defaults=search_defaults,
        )
        self.guard = ExclusivityGuard(self.lock)
        self.cancellation = CancellationController(engine)
        self.bridge = AsyncBridge(engine, self.resolver, self.guard, self.cancellation.cancel, loop=loop)
        self._running: dict[OperationKind, OperationHandle] = {}

    @classmethod
    def from_config(cls, config: SwordgateConfig | None = None, **engine_options: Any) -> "SwordInterface":
        """
        Build an interface from configuration.

        The engine is created through the engine registry from
        ``config.engine``; keyword arguments override its options.
        """
        if config is None:
            config = load_config()

        options: dict[str, Any] = dict(config.engine.options)
        if config.engine.type == "catalog":
            if config.engine.catalog is not None:
                options.setdefault("catalog_path", config.engine.catalog)
            options.setdefault("step_delay", config.engine.step_delay)
        options.update(engine_options)

        engine = get_engine(config.engine.type, **options)
        logger.debug("Created %s engine with options %s", config.engine.type, sorted(options))
        return cls(
            engine,
            prefer_repository_first=config.signatures.prefer_repository_first,
            search_defaults=config.search.model_dump(),
        )

    def close(self) -> None:
        """Release engine resources, if the engine holds any."""
        close = getattr(self.engine, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Asynchronous operations
    # ------------------------------------------------------------------

    def _start(self, kind: OperationKind, args: Sequence[Any], kwargs: Mapping[str, Any], operation: str) -> OperationHandle:
        handle = self.bridge.invoke(kind, args, kwargs, operation=operation)
        if kind.cancellable and not handle.done:
            self._running[kind] = handle
            handle.add_terminal_callback(lambda: self._forget(kind, handle))
        return handle

    def _forget(self, kind: OperationKind, handle: OperationHandle) -> None:
        if self._running.get(kind) is handle:
            del self._running[kind]

    def update_repository_config(self, *args: Any, **kwargs: Any) -> OperationHandle:
        """
        Refresh the remote repository configuration.

        Accepts ``(force_refresh, progress_callback)`` or
        ``(progress_callback)``. The handle resolves with the engine's
        status (``True`` or a per-repository status mapping).
        """
        return self._start(OperationKind.UPDATE_CONFIG, args, kwargs, "update_repository_config")

    def install_module(self, *args: Any, **kwargs: Any) -> OperationHandle:
        """
        Install a module from a remote repository.

        Accepts ``(module_code, repository, progress_callback)``,
        ``(repository, module_code, progress_callback)`` or
        ``(module_code, progress_callback)``; a missing or ``None``
        repository means automatic resolution. The handle can be cancelled.
        """
        return self._start(OperationKind.INSTALL, args, kwargs, "install_module")

    def uninstall_module(self, *args: Any, **kwargs: Any) -> OperationHandle:
        """Remove a locally installed module."""
        return self._start(OperationKind.UNINSTALL, args, kwargs, "uninstall_module")

    def get_module_search_results(self, *args: Any, **kwargs: Any) -> OperationHandle:
        """
        Search a local module.

        Accepts ``(module_code, term, progress_callback, search_type, scope,
        case_sensitive, extended_boundaries, word_boundary_filter)`` with
        trailing arguments optional, or the older ``(module_code, term,
        search_type, case_sensitive, extended_boundaries,
        progress_callback)``. Only one search may run per interface; a
        second one is rejected with OperationInProgressError.
        """
        return self._start(OperationKind.SEARCH, args, kwargs, "get_module_search_results")

    @property
    def is_search_running(self) -> bool:
        return self.lock.held

    def cancel_installation(self) -> bool:
        """Cancel the install this interface is running, if any."""
        handle = self._running.get(OperationKind.INSTALL)
        if handle is None:
            return False
        return handle.cancel()

    def terminate_search(self) -> bool:
        """Terminate the search this interface is running, if any."""
        handle = self._running.get(OperationKind.SEARCH)
        if handle is None:
            return False
        return handle.cancel()

    # ------------------------------------------------------------------
    # Synchronous accessors
    # ------------------------------------------------------------------

    def get_module_description(self, *args: Any, **kwargs: Any) -> str:
        request = self.resolver.resolve(OperationKind.DESCRIBE, args, kwargs, operation="get_module_description")
        return self.engine.describe(request.module_code, request.repository)

    def is_module_available_in_repo(self, *args: Any, **kwargs: Any) -> bool:
        request = self.resolver.resolve(
            OperationKind.CHECK_AVAILABILITY, args, kwargs, operation="is_module_available_in_repo"
        )
        return self.engine.is_available(request.module_code, request.repository)

    def get_repo_module(self, *args: Any, **kwargs: Any) -> ModuleInfo:
        request = self.resolver.resolve(OperationKind.LOOKUP_REPO_MODULE, args, kwargs, operation="get_repo_module")
        return self.engine.lookup_repo_module(request.module_code, request.repository)

    def get_local_module(self, *args: Any, **kwargs: Any) -> ModuleInfo | None:
        """Return the installed module, or None when it is not installed."""
        request = self.resolver.resolve(OperationKind.LOOKUP_LOCAL_MODULE, args, kwargs, operation="get_local_module")
        return self.engine.lookup_local_module(request.module_code)

    def repository_config_existing(self) -> bool:
        return self.engine.repository_config_existing()

    def get_repo_names(self) -> list[str]:
        return list(self.engine.get_repo_names())

    def get_all_repo_modules(self, repository: str) -> list[ModuleInfo]:
        return self.engine.get_all_repo_modules(repository)

    def get_repo_languages(self, repository: str) -> list[str]:
        return self.engine.get_repo_languages(repository)

    def get_all_local_modules(self) -> list[ModuleInfo]:
        return self.engine.get_all_local_modules()

    def is_module_in_user_dir(self, module_code: str) -> bool:
        return self.engine.is_module_in_user_dir(module_code)

    def save_module_unlock_key(self, module_code: str, key: str) -> None:
        """
        Store the unlock key of a locked module.

        Raises:
            UnlockKeyError: If the engine reports a non-zero status
        """
        code = self.engine.save_module_unlock_key(module_code, key)
        if code != 0:
            raise UnlockKeyError(module_code, code)

    def get_engine_version(self) -> str:
        return self.engine.get_version()


__all__ = ["SwordInterface"]
