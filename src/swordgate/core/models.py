"""
Data models for the swordgate interface layer.

Defines the canonical request produced by signature resolution, the
value objects returned by the engine (modules, search hits, progress
events) and the enums shared across resolver, bridge and facade.

Key Models:
    - CanonicalRequest: shape-independent description of one public call
    - SearchParameters: everything a Search call needs besides the module
    - ProgressEvent: one progress notification relayed from the engine
    - ModuleInfo: module metadata from a repository or the local store
    - SearchResult: a single verse hit
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class Auto(Enum):
    """
    Sentinel meaning "resolve the repository automatically".

    A plain Enum (not ``str``-based) so that it never compares equal to a
    repository that happens to be called "auto".
    """

    AUTO = "AUTO"

    def __repr__(self) -> str:
        return "AUTO"


AUTO = Auto.AUTO

RepositoryRef = Union[str, Auto]


class OperationKind(str, Enum):
    """Public operations known to the resolver and the bridge."""

    INSTALL = "install"
    UNINSTALL = "uninstall"
    DESCRIBE = "describe"
    CHECK_AVAILABILITY = "check_availability"
    LOOKUP_REPO_MODULE = "lookup_repo_module"
    LOOKUP_LOCAL_MODULE = "lookup_local_module"
    SEARCH = "search"
    UPDATE_CONFIG = "update_config"

    @property
    def cancellable(self) -> bool:
        return self in (OperationKind.INSTALL, OperationKind.SEARCH)


class OperationState(str, Enum):
    """Lifecycle states of an OperationHandle."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (
            OperationState.COMPLETED,
            OperationState.FAILED,
            OperationState.CANCELLED,
        )


class SearchType(str, Enum):
    """How the search term is interpreted."""

    PHRASE = "phrase"
    MULTI_WORD = "multiWord"
    STRONGS_NUMBER = "strongsNumber"


class SearchScope(str, Enum):
    """Which part of a bible module is searched."""

    BIBLE = "BIBLE"
    OLD_TESTAMENT = "OT"
    NEW_TESTAMENT = "NT"


STRONGS_KEY_PATTERN = re.compile(r"^[GH]\d+$")


def is_valid_strongs_key(term: str) -> bool:
    """Check whether ``term`` looks like a Strong's key (e.g. ``G4102``)."""
    return bool(STRONGS_KEY_PATTERN.match(term))


def _no_progress(event: Any) -> None:
    return None


class SearchParameters(BaseModel):
    """Search-specific part of a CanonicalRequest."""

    model_config = ConfigDict(frozen=True)

    term: str
    search_type: SearchType = SearchType.PHRASE
    scope: SearchScope = SearchScope.BIBLE
    case_sensitive: bool = False
    extended_boundaries: bool = False
    word_boundary_filter: bool = False


class CanonicalRequest(BaseModel):
    """
    Normalized, shape-independent description of one public call.

    Two calls that differ only in argument order (repository first or
    last, repository omitted or passed as ``None``) resolve to requests
    that are equal on every field except ``progress_callback``.

    Attributes:
        operation: Which public operation was called
        module_code: Module addressed by the call (None only for UpdateConfig)
        repository: Repository name, or AUTO for automatic resolution
        progress_callback: Receives every progress event; no-op when absent
        search: Search parameters, only for Search requests
        force_refresh: Only meaningful for UpdateConfig
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    operation: OperationKind
    module_code: str | None = None
    repository: RepositoryRef = AUTO
    progress_callback: Callable[[Any], Any] = Field(default=_no_progress, repr=False)
    search: SearchParameters | None = None
    force_refresh: bool = False

    def identity(self) -> dict[str, Any]:
        """Return all fields except the progress callback, for comparisons."""
        return self.model_dump(exclude={"progress_callback"})


class ProgressEvent(BaseModel):
    """Progress notification emitted by the engine."""

    total_percent: int = 0
    file_percent: int = 0
    message: str = ""


class ModuleInfo(BaseModel):
    """Module metadata, as known to a repository or the local module store."""

    name: str
    description: str = ""
    language: str = ""
    repository: str | None = None
    module_type: str = "Biblical Texts"
    version: str = ""
    size: int | None = None
    locked: bool = False
    in_user_dir: bool = False


class SearchResult(BaseModel):
    """A single verse matched by a module search."""

    module_code: str
    reference: str
    book: str
    chapter: int
    verse: int
    absolute_verse_number: int
    content: str


__all__ = [
    "AUTO",
    "Auto",
    "RepositoryRef",
    "OperationKind",
    "OperationState",
    "SearchType",
    "SearchScope",
    "SearchParameters",
    "CanonicalRequest",
    "ProgressEvent",
    "ModuleInfo",
    "SearchResult",
    "is_valid_strongs_key",
]
