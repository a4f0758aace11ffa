"""Tests for the callback-to-future bridge."""

import asyncio

import pytest

from swordgate.core.bridge import AsyncBridge, CancellableOperationHandle, OperationHandle
from swordgate.core.cancellation import CancellationController
from swordgate.core.exceptions import (
    EngineFailure,
    NotFoundError,
    OperationCancelledError,
    SignatureError,
)
from swordgate.core.guard import ExclusivityGuard
from swordgate.core.models import OperationKind, OperationState, ProgressEvent, SearchResult
from swordgate.core.signature import SignatureResolver


@pytest.fixture
def bridge(scripted_engine) -> AsyncBridge:
    resolver = SignatureResolver(repository_names=scripted_engine.get_repo_names)
    canceller = CancellationController(scripted_engine)
    return AsyncBridge(scripted_engine, resolver, ExclusivityGuard(), canceller.cancel)


async def settle() -> None:
    """Let callbacks scheduled with call_soon_threadsafe run."""
    for _ in range(3):
        await asyncio.sleep(0)


class TestInvoke:
    """Tests for issuing operations."""

    @pytest.mark.asyncio
    async def test_sync_kind_rejected(self, bridge: AsyncBridge) -> None:
        """Synchronous accessors are not routed through the bridge."""
        with pytest.raises(ValueError, match="not an asynchronous operation"):
            bridge.invoke(OperationKind.DESCRIBE, ("KJV",))

    @pytest.mark.asyncio
    async def test_signature_error_rejects_future(self, bridge: AsyncBridge, scripted_engine) -> None:
        """Bad arguments come back as an already-rejected future."""
        handle = bridge.invoke(OperationKind.INSTALL, (123,), operation="install_module")

        assert handle.state is OperationState.FAILED
        assert handle.request is None
        with pytest.raises(SignatureError):
            await handle
        assert scripted_engine.calls_to("install") == []

    @pytest.mark.asyncio
    async def test_handle_types(self, bridge: AsyncBridge) -> None:
        """Only install and search handles can be cancelled."""
        install = bridge.invoke(OperationKind.INSTALL, ("KJV",))
        search = bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))
        uninstall = bridge.invoke(OperationKind.UNINSTALL, ("KJV",))
        update = bridge.invoke(OperationKind.UPDATE_CONFIG, ())

        assert isinstance(install, CancellableOperationHandle)
        assert isinstance(search, CancellableOperationHandle)
        assert not isinstance(uninstall, CancellableOperationHandle)
        assert not isinstance(update, CancellableOperationHandle)
        assert not hasattr(uninstall, "cancel")
        assert isinstance(update, OperationHandle)

    @pytest.mark.asyncio
    async def test_running_after_issue(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV", "CrossWire"))

        assert handle.state is OperationState.RUNNING
        assert scripted_engine.calls_to("install") == [("KJV", "CrossWire")]
        assert "install" in repr(handle)

    @pytest.mark.asyncio
    async def test_search_passes_plain_values(self, bridge: AsyncBridge, scripted_engine) -> None:
        """The engine receives enum values as plain strings."""
        bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))

        assert scripted_engine.calls_to("search") == [
            ("KJV", "faith", "phrase", "BIBLE", False, False, False)
        ]

    @pytest.mark.asyncio
    async def test_engine_raising_becomes_rejection(self, bridge: AsyncBridge, scripted_engine) -> None:
        """An engine exception is wrapped, never raised to the caller."""
        boom = RuntimeError("boom")
        scripted_engine.raise_on["install"] = boom

        handle = bridge.invoke(OperationKind.INSTALL, ("KJV",))

        assert handle.state is OperationState.FAILED
        with pytest.raises(EngineFailure) as exc_info:
            await handle
        assert exc_info.value.code is boom
        assert exc_info.value.__cause__ is boom

    @pytest.mark.asyncio
    async def test_engine_swordgate_error_kept(self, bridge: AsyncBridge, scripted_engine) -> None:
        """Swordgate errors raised by the engine are not re-wrapped."""
        scripted_engine.raise_on["uninstall"] = NotFoundError("module", "KJV")

        handle = bridge.invoke(OperationKind.UNINSTALL, ("KJV",))

        with pytest.raises(NotFoundError):
            await handle

    @pytest.mark.asyncio
    async def test_completion_waits_for_invoke_to_return(self, bridge: AsyncBridge, scripted_engine) -> None:
        """An engine that completes synchronously still settles on the loop."""

        def instant_install(module_code, repository, on_progress, on_done):
            on_progress(ProgressEvent(total_percent=100))
            on_done(0)

        scripted_engine.install = instant_install
        events = []

        handle = bridge.invoke(OperationKind.INSTALL, ("KJV", events.append))

        assert handle.state is OperationState.RUNNING
        assert events == []
        await handle
        assert handle.state is OperationState.COMPLETED
        assert events == [ProgressEvent(total_percent=100)]


class TestProgress:
    """Tests for progress relaying."""

    @pytest.mark.asyncio
    async def test_progress_in_order_before_result(self, bridge: AsyncBridge, scripted_engine, progress_log) -> None:
        """Every progress event arrives, in order, before the future settles."""
        events, on_progress = progress_log
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV", on_progress))

        for percent in (10, 50, 100):
            scripted_engine.emit_progress("install", ProgressEvent(total_percent=percent))
        scripted_engine.finish("install", 0)

        assert await handle is None
        assert [e.total_percent for e in events] == [10, 50, 100]

    @pytest.mark.asyncio
    async def test_progress_after_settle_dropped(self, bridge: AsyncBridge, scripted_engine, progress_log) -> None:
        """No event is delivered once the future has settled."""
        events, on_progress = progress_log
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV", on_progress))

        scripted_engine.emit_progress("install", "first")
        scripted_engine.finish("install", 0)
        scripted_engine.emit_progress("install", "late")
        await handle
        await settle()

        assert events == ["first"]

    @pytest.mark.asyncio
    async def test_progress_verbatim(self, bridge: AsyncBridge, scripted_engine, progress_log) -> None:
        """Events are passed through unchanged."""
        events, on_progress = progress_log
        bridge.invoke(OperationKind.UPDATE_CONFIG, (on_progress,))
        marker = {"repository": "CrossWire", "done": 1}

        scripted_engine.emit_progress("update_config", marker)
        await settle()

        assert events[0] is marker

    @pytest.mark.asyncio
    async def test_failing_progress_callback(self, bridge: AsyncBridge, scripted_engine, caplog) -> None:
        """A raising progress callback is logged and does not settle the future."""
        seen = []

        def flaky(event):
            seen.append(event)
            if event == 1:
                raise ValueError("bad callback")

        handle = bridge.invoke(OperationKind.INSTALL, ("KJV", flaky))

        with caplog.at_level("WARNING", logger="swordgate.core.bridge"):
            scripted_engine.emit_progress("install", 1)
            scripted_engine.emit_progress("install", 2)
            await settle()

        assert handle.state is OperationState.RUNNING
        assert seen == [1, 2]
        assert "Progress callback of install raised" in caplog.text

        scripted_engine.finish("install", 0)
        await handle
        assert handle.state is OperationState.COMPLETED


class TestCompletion:
    """Tests for mapping engine outcomes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [0, True])
    async def test_install_success(self, bridge: AsyncBridge, scripted_engine, status) -> None:
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV",))
        scripted_engine.finish("install", status)

        assert await handle is None
        assert handle.state is OperationState.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [-1, -5, 42, False])
    async def test_install_failure_code_unchanged(self, bridge: AsyncBridge, scripted_engine, code) -> None:
        """The engine's failure code is carried verbatim."""
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV",))
        scripted_engine.finish("install", code)

        with pytest.raises(EngineFailure) as exc_info:
            await handle
        assert exc_info.value.code == code
        assert type(exc_info.value.code) is type(code)
        assert handle.state is OperationState.FAILED

    @pytest.mark.asyncio
    async def test_install_cancelled_status(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV",))
        scripted_engine.finish("install", -9)

        with pytest.raises(OperationCancelledError) as exc_info:
            await handle
        assert exc_info.value.code == -9
        assert handle.state is OperationState.CANCELLED

    @pytest.mark.asyncio
    async def test_repeated_completion_ignored(self, bridge: AsyncBridge, scripted_engine) -> None:
        """Only the first completion settles the future."""
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV",))
        scripted_engine.finish("install", 0)
        scripted_engine.finish("install", -1)
        await settle()

        assert await handle is None
        assert handle.state is OperationState.COMPLETED

    @pytest.mark.asyncio
    async def test_uninstall(self, bridge: AsyncBridge, scripted_engine) -> None:
        ok = bridge.invoke(OperationKind.UNINSTALL, ("KJV",))
        scripted_engine.finish("uninstall", True)
        assert await ok is None

        failed = bridge.invoke(OperationKind.UNINSTALL, ("ASV",))
        scripted_engine.finish("uninstall", False)
        with pytest.raises(EngineFailure) as exc_info:
            await failed
        assert exc_info.value.code is False

    @pytest.mark.asyncio
    async def test_search_results(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))
        hits = [
            SearchResult(
                module_code="KJV",
                reference="Heb.11.1",
                book="Heb",
                chapter=11,
                verse=1,
                absolute_verse_number=6,
                content="Now faith is the substance of things hoped for",
            )
        ]
        scripted_engine.finish("search", hits)

        assert await handle == hits

    @pytest.mark.asyncio
    async def test_search_empty_results(self, bridge: AsyncBridge, scripted_engine) -> None:
        """An empty list without a cancel request is a normal result."""
        handle = bridge.invoke(OperationKind.SEARCH, ("KJV", "nothing"))
        scripted_engine.finish("search", [])

        assert await handle == []
        assert handle.state is OperationState.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome,error,state",
        [
            (-9, OperationCancelledError, OperationState.CANCELLED),
            (-1, EngineFailure, OperationState.FAILED),
        ],
    )
    async def test_search_status_codes(self, bridge: AsyncBridge, scripted_engine, outcome, error, state) -> None:
        handle = bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))
        scripted_engine.finish("search", outcome)

        with pytest.raises(error):
            await handle
        assert handle.state is state

    @pytest.mark.asyncio
    async def test_update_config_mapping(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.UPDATE_CONFIG, (True, lambda e: None))
        scripted_engine.finish("update_config", {"result": True, "CrossWire": True})

        assert await handle == {"result": True, "CrossWire": True}
        assert scripted_engine.calls_to("update_config") == [(True,)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [False, {"result": False, "CrossWire": False}, None])
    async def test_update_config_failure(self, bridge: AsyncBridge, scripted_engine, status) -> None:
        handle = bridge.invoke(OperationKind.UPDATE_CONFIG, ())
        scripted_engine.finish("update_config", status)

        with pytest.raises(EngineFailure) as exc_info:
            await handle
        assert exc_info.value.code == status


class TestSearchLock:
    """Tests for lock handling inside the bridge."""

    @pytest.mark.asyncio
    async def test_lock_released_on_completion(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))
        assert bridge.guard.lock.held is True

        scripted_engine.finish("search", [])
        await handle
        assert bridge.guard.lock.held is False

    @pytest.mark.asyncio
    async def test_signature_error_never_takes_lock(self, bridge: AsyncBridge) -> None:
        handle = bridge.invoke(OperationKind.SEARCH, ("KJV",))

        assert handle.state is OperationState.FAILED
        assert bridge.guard.lock.held is False
        assert bridge.guard.lock.acquisitions == 0

    @pytest.mark.asyncio
    async def test_lock_released_when_engine_raises(self, bridge: AsyncBridge, scripted_engine) -> None:
        scripted_engine.raise_on["search"] = RuntimeError("worker gone")

        handle = bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))

        with pytest.raises(EngineFailure):
            await handle
        assert bridge.guard.lock.held is False


class TestCallerCancellation:
    """Tests for futures cancelled by the caller rather than the engine."""

    @pytest.mark.asyncio
    async def test_timeout_stops_progress(self, bridge: AsyncBridge, scripted_engine) -> None:
        """After wait_for gives up, no further events reach the callback."""
        seen = []
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV", seen.append))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(handle.future, timeout=0.01)
        await settle()

        assert handle.future.cancelled()
        scripted_engine.emit_progress("install", "late")
        await settle()
        assert seen == []

    @pytest.mark.asyncio
    async def test_cancelled_install_signals_engine(self, bridge: AsyncBridge, scripted_engine) -> None:
        """The engine is asked to stop; its outcome still decides the state."""
        handle = bridge.invoke(OperationKind.INSTALL, ("KJV",))

        handle.future.cancel()
        await settle()

        assert handle.cancel_requested is True
        assert scripted_engine.cancel_installation_calls == 1
        assert handle.state is OperationState.RUNNING

        scripted_engine.finish("install", -9)
        await settle()
        assert handle.state is OperationState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelled_search_keeps_lock_until_engine_reports(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.SEARCH, ("KJV", "faith"))

        handle.future.cancel()
        await settle()

        assert scripted_engine.terminate_search_calls == 1
        assert bridge.guard.lock.held is True

        scripted_engine.finish("search", [])
        await settle()
        assert handle.state is OperationState.CANCELLED
        assert bridge.guard.lock.held is False

    @pytest.mark.asyncio
    async def test_uninstall_cancel_not_forwarded(self, bridge: AsyncBridge, scripted_engine) -> None:
        handle = bridge.invoke(OperationKind.UNINSTALL, ("KJV",))

        handle.future.cancel()
        await settle()

        assert scripted_engine.cancel_installation_calls == 0
        scripted_engine.finish("uninstall", True)
        await settle()
        assert handle.state is OperationState.COMPLETED
