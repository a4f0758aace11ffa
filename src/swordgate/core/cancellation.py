"""
Best-effort cancellation of running operations.

The controller only *requests* termination. It forwards the engine's
termination signal and flags the handle; the final state is still decided
by the bridge when the engine's completion callback arrives. A cancel that
races a completion therefore always loses to the completion that already
happened, and cancelling a settled handle is a no-op.

There is no polling and no timeout: if the engine never calls back, the
future stays pending.
"""

import logging
from collections.abc import Callable

from swordgate.core.engine.adapter import SwordEngine
from swordgate.core.models import OperationKind, OperationState

logger = logging.getLogger(__name__)


class CancellationController:
    """
    Forwards cancellation requests to the engine.

    Args:
        engine: Engine whose termination primitives are used
    """

    def __init__(self, engine: SwordEngine) -> None:
        self.engine = engine
        self._signals: dict[OperationKind, Callable[[], None]] = {
            OperationKind.INSTALL: engine.cancel_installation,
            OperationKind.SEARCH: engine.terminate_search,
        }

    def cancel(self, handle) -> bool:
        """
        Request termination of ``handle``.

        The signal is withheld once the engine has reported the outcome,
        even while that outcome is still queued for the loop: the engine
        is no longer running the operation, and a late signal would reach
        whichever job it runs next.

        Args:
            handle: An OperationHandle of a cancellable kind

        Returns:
            True if the signal was forwarded, False if the handle had
            already settled, was never issued, or its outcome is already
            on the way

        Raises:
            ValueError: If the handle's kind cannot be cancelled
        """
        signal = self._signals.get(handle.kind)
        if signal is None:
            raise ValueError(f"{handle.kind.value} operations cannot be cancelled")
        if handle.state is not OperationState.RUNNING:
            logger.debug("Cancel of %s ignored in state %s", handle.operation, handle.state.value)
            return False
        if handle.completion_received:
            logger.debug("Cancel of %s ignored: engine already reported", handle.operation)
            return False

        handle.cancel_requested = True
        logger.info("Requesting cancellation of %s", handle.operation)
        signal()
        return True


__all__ = ["CancellationController"]
