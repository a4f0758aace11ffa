"""
Engine adapters.

The engine is the external module/text subsystem swordgate wraps. This
package holds the SwordEngine protocol, the name-based engine registry
and the catalog engine (registered as ``catalog``).
"""

from swordgate.core.engine.adapter import (
    INSTALL_CANCELLED,
    INSTALL_FAILED,
    INSTALL_OK,
    SwordEngine,
    get_engine,
    is_engine_available,
    list_engines,
    register_engine,
)
from swordgate.core.engine.catalog import CatalogEngine, load_catalog

__all__ = [
    "INSTALL_CANCELLED",
    "INSTALL_FAILED",
    "INSTALL_OK",
    "CatalogEngine",
    "SwordEngine",
    "get_engine",
    "is_engine_available",
    "list_engines",
    "load_catalog",
    "register_engine",
]
