"""
Callback-to-future bridge.

The AsyncBridge turns one public call into an OperationHandle wrapping an
``asyncio.Future``. It resolves the arguments, asks the exclusivity guard
for admission where the operation kind is guarded, issues the engine call
and relays the engine's callbacks:

- every progress event goes to the request's progress callback, verbatim
  and in emission order, until the operation settles;
- the completion callback settles the future exactly once, mapping the
  engine's status into a result, an EngineFailure or an
  OperationCancelledError.

Engine callbacks are always re-scheduled onto the owning event loop with
``call_soon_threadsafe``. That keeps progress-before-terminal ordering for
engines that call back from worker threads, and means a completion can
never run before ``invoke`` has returned the handle.

Nothing here raises synchronously: bad arguments, a busy guard and an
engine that raises while being called all come back as a rejected future.

A caller may cancel the future itself (``asyncio.wait_for`` timing out, a
cancelled task). Progress relaying stops at that point and, for
cancellable kinds, termination is requested from the engine. The handle
stays Running until the engine reports, so a search keeps its lock for as
long as the engine is still searching.
"""

import asyncio
import functools
import logging
from collections.abc import Callable, Generator, Mapping, Sequence
from typing import Any

from swordgate.core.engine.adapter import INSTALL_CANCELLED, SwordEngine
from swordgate.core.exceptions import EngineFailure, OperationCancelledError, SwordgateError
from swordgate.core.guard import ExclusivityGuard
from swordgate.core.models import CanonicalRequest, OperationKind, OperationState
from swordgate.core.signature import SignatureResolver

logger = logging.getLogger(__name__)

ASYNC_KINDS = frozenset(
    {
        OperationKind.INSTALL,
        OperationKind.UNINSTALL,
        OperationKind.SEARCH,
        OperationKind.UPDATE_CONFIG,
    }
)


class OperationHandle:
    """
    Lifecycle object for one engine invocation.

    Awaiting the handle awaits its future. The handle's state follows
    Pending -> Running -> Completed | Failed | Cancelled; the terminal
    state is set exactly once, by the bridge.

    Attributes:
        kind: Operation kind
        operation: Public name of the operation that created the handle
        future: The externally observable future
        request: The canonical request, or None when resolution failed
        cancel_requested: Whether cancellation has been forwarded to the engine
        completion_received: Whether the engine has reported its outcome;
            set on the engine's thread, before the outcome reaches the loop
    """

    def __init__(self, kind: OperationKind, operation: str, future: asyncio.Future) -> None:
        self.kind = kind
        self.operation = operation
        self.future = future
        self.request: CanonicalRequest | None = None
        self.cancel_requested = False
        self.completion_received = False
        self._state = OperationState.PENDING
        self._terminal_callbacks: list[Callable[[], Any]] = []

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state.terminal

    def add_terminal_callback(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` once the handle reaches a terminal state."""
        if self._state.terminal:
            callback()
        else:
            self._terminal_callbacks.append(callback)

    def __await__(self) -> Generator[Any, None, Any]:
        return self.future.__await__()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.operation} {self._state.value}>"

    def _mark_running(self) -> None:
        if self._state is OperationState.PENDING:
            self._state = OperationState.RUNNING

    def _settle(
        self,
        state: OperationState,
        result: Any = None,
        error: BaseException | None = None,
    ) -> bool:
        # Settle guard: only the first terminal transition counts.
        if self._state.terminal:
            return False
        self._state = state
        if not self.future.done():
            if error is not None:
                self.future.set_exception(error)
            else:
                self.future.set_result(result)
        callbacks, self._terminal_callbacks = self._terminal_callbacks, []
        for callback in callbacks:
            callback()
        return True


class CancellableOperationHandle(OperationHandle):
    """OperationHandle for kinds that support best-effort cancellation."""

    def __init__(
        self,
        kind: OperationKind,
        operation: str,
        future: asyncio.Future,
        canceller: Callable[[OperationHandle], bool],
    ) -> None:
        super().__init__(kind, operation, future)
        self._canceller = canceller

    def cancel(self) -> bool:
        """
        Ask the engine to terminate this operation.

        Returns:
            True if a termination signal was forwarded, False if the
            operation had already settled
        """
        return self._canceller(self)


def _status_ok(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, int) and value == 0


def _interpret_install(handle: OperationHandle, status: Any) -> tuple[OperationState, Any, BaseException | None]:
    if _status_ok(status):
        return OperationState.COMPLETED, None, None
    if not isinstance(status, bool) and status == INSTALL_CANCELLED:
        return OperationState.CANCELLED, None, OperationCancelledError(handle.operation, status)
    return OperationState.FAILED, None, EngineFailure(handle.operation, status)


def _interpret_uninstall(handle: OperationHandle, status: Any) -> tuple[OperationState, Any, BaseException | None]:
    if _status_ok(status):
        return OperationState.COMPLETED, None, None
    return OperationState.FAILED, None, EngineFailure(handle.operation, status)


def _interpret_search(handle: OperationHandle, outcome: Any) -> tuple[OperationState, Any, BaseException | None]:
    if isinstance(outcome, (list, tuple)):
        if handle.cancel_requested and not outcome:
            # A terminated search reports an emptied result list.
            return OperationState.CANCELLED, None, OperationCancelledError(handle.operation)
        return OperationState.COMPLETED, list(outcome), None
    if isinstance(outcome, int) and not isinstance(outcome, bool) and outcome == INSTALL_CANCELLED:
        return OperationState.CANCELLED, None, OperationCancelledError(handle.operation, outcome)
    return OperationState.FAILED, None, EngineFailure(handle.operation, outcome)


def _interpret_update_config(handle: OperationHandle, status: Any) -> tuple[OperationState, Any, BaseException | None]:
    if isinstance(status, Mapping):
        if status.get("result"):
            return OperationState.COMPLETED, dict(status), None
        return OperationState.FAILED, None, EngineFailure(handle.operation, dict(status))
    if status is True:
        return OperationState.COMPLETED, True, None
    return OperationState.FAILED, None, EngineFailure(handle.operation, status)


_INTERPRETERS = {
    OperationKind.INSTALL: _interpret_install,
    OperationKind.UNINSTALL: _interpret_uninstall,
    OperationKind.SEARCH: _interpret_search,
    OperationKind.UPDATE_CONFIG: _interpret_update_config,
}


class AsyncBridge:
    """
    Issues engine calls and settles their futures.

    Args:
        engine: The engine adapter
        resolver: Signature resolver for raw arguments
        guard: Exclusivity guard consulted for guarded kinds
        canceller: Called by ``CancellableOperationHandle.cancel()``
        loop: Event loop to bind futures to (defaults to the running loop)
    """

    def __init__(
        self,
        engine: SwordEngine,
        resolver: SignatureResolver,
        guard: ExclusivityGuard,
        canceller: Callable[[OperationHandle], bool],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.engine = engine
        self.resolver = resolver
        self.guard = guard
        self._canceller = canceller
        self._loop = loop

    def invoke(
        self,
        kind: OperationKind,
        args: Sequence[Any],
        kwargs: Mapping[str, Any] | None = None,
        operation: str | None = None,
    ) -> OperationHandle:
        """
        Start one asynchronous operation.

        Args:
            kind: One of the asynchronous operation kinds
            args: Raw positional arguments from the caller
            kwargs: Raw keyword arguments from the caller
            operation: Public operation name, for errors and logs

        Returns:
            Handle whose future settles with the outcome; already rejected
            when the call could not be issued
        """
        if kind not in ASYNC_KINDS:
            raise ValueError(f"{kind.value} is not an asynchronous operation")

        name = operation or kind.value
        loop = self._loop or asyncio.get_running_loop()
        future = loop.create_future()
        handle: OperationHandle
        if kind.cancellable:
            handle = CancellableOperationHandle(kind, name, future, self._canceller)
        else:
            handle = OperationHandle(kind, name, future)

        try:
            handle.request = self.resolver.resolve(kind, args, kwargs, operation=name)
            if self.guard.guards(kind):
                token = self.guard.admit(kind, operation=name)
                handle.add_terminal_callback(token.release)
        except Exception as exc:
            logger.debug("%s rejected before reaching the engine: %s", name, exc)
            handle._settle(OperationState.FAILED, error=exc)
            return handle

        handle._mark_running()
        future.add_done_callback(functools.partial(self._on_future_done, handle))
        logger.info("Starting %s for %s", name, handle.request.module_code or "repositories")
        try:
            self._issue(handle.request, self._progress_relay(loop, handle), self._done_relay(loop, handle))
        except Exception as exc:
            logger.error("Engine raised while starting %s: %s", name, exc)
            error = exc if isinstance(exc, SwordgateError) else EngineFailure(name, exc, str(exc))
            if error is not exc:
                error.__cause__ = exc
            handle._settle(OperationState.FAILED, error=error)
        return handle

    def _issue(
        self,
        request: CanonicalRequest,
        on_progress: Callable[[Any], None],
        on_done: Callable[[Any], None],
    ) -> None:
        kind = request.operation
        if kind is OperationKind.INSTALL:
            self.engine.install(request.module_code, request.repository, on_progress, on_done)
        elif kind is OperationKind.UNINSTALL:
            self.engine.uninstall(request.module_code, request.repository, on_done)
        elif kind is OperationKind.SEARCH:
            search = request.search
            self.engine.search(
                request.module_code,
                search.term,
                search.search_type.value,
                search.scope.value,
                search.case_sensitive,
                search.extended_boundaries,
                search.word_boundary_filter,
                on_progress,
                on_done,
            )
        elif kind is OperationKind.UPDATE_CONFIG:
            self.engine.update_config(request.force_refresh, on_progress, on_done)

    def _progress_relay(self, loop: asyncio.AbstractEventLoop, handle: OperationHandle) -> Callable[[Any], None]:
        def on_progress(event: Any) -> None:
            loop.call_soon_threadsafe(self._deliver_progress, handle, event)

        return on_progress

    def _done_relay(self, loop: asyncio.AbstractEventLoop, handle: OperationHandle) -> Callable[[Any], None]:
        def on_done(outcome: Any) -> None:
            handle.completion_received = True
            loop.call_soon_threadsafe(self._complete, handle, outcome)

        return on_done

    def _on_future_done(self, handle: OperationHandle, future: asyncio.Future) -> None:
        if not future.cancelled() or handle.done:
            return
        logger.info("Caller cancelled the future of %s", handle.operation)
        if isinstance(handle, CancellableOperationHandle):
            handle.cancel()

    def _deliver_progress(self, handle: OperationHandle, event: Any) -> None:
        if handle.done or handle.future.done():
            logger.debug("Dropped progress event for settled %s", handle.operation)
            return
        try:
            handle.request.progress_callback(event)
        except Exception:
            logger.warning("Progress callback of %s raised", handle.operation, exc_info=True)

    def _complete(self, handle: OperationHandle, outcome: Any) -> None:
        if handle.done:
            logger.debug("Ignored repeated completion for %s", handle.operation)
            return
        state, result, error = _INTERPRETERS[handle.kind](handle, outcome)
        handle._settle(state, result=result, error=error)
        logger.info("Finished %s: %s", handle.operation, state.value)


__all__ = [
    "ASYNC_KINDS",
    "AsyncBridge",
    "CancellableOperationHandle",
    "OperationHandle",
]
