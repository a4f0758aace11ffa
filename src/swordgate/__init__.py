"""
Swordgate - async interface layer over a SWORD-style module engine

Turns the engine's callback primitives into awaitable operations with
progress relaying, search exclusivity and best-effort cancellation.
"""

__version__ = "0.3.0"

# Re-export the public surface for convenience
from swordgate.core.exceptions import (
    EngineFailure,
    NotFoundError,
    OperationCancelledError,
    OperationInProgressError,
    SignatureError,
    SwordgateError,
)
from swordgate.core.interface import SwordInterface
from swordgate.core.models import AUTO, ModuleInfo, SearchResult

__all__ = [
    "AUTO",
    "EngineFailure",
    "ModuleInfo",
    "NotFoundError",
    "OperationCancelledError",
    "OperationInProgressError",
    "SearchResult",
    "SignatureError",
    "SwordInterface",
    "SwordgateError",
    "__version__",
]
