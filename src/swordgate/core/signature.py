"""
Signature resolution for the public operations.

Each operation declares an explicit table of call shapes: ordered lists of
argument roles, one per accepted historical calling convention. Resolving
a raw argument list means finding the shape whose roles accept every
argument, binding values positionally, filling defaults and producing a
CanonicalRequest.

Matching is never inferred from parameter counts alone. Shapes of the
same arity with swapped roles (``(module, repository)`` against
``(repository, module)``) are told apart by per-role specificity: a value
that is a known repository name, or ``None``, scores higher in the
repository role than an arbitrary string. The highest total score wins and
ties fall back to table order, which is configurable.

Example:
    >>> resolver = SignatureResolver(repository_names=lambda: ["CrossWire"])
    >>> a = resolver.resolve(OperationKind.INSTALL, ("CrossWire", "KJV", print))
    >>> b = resolver.resolve(OperationKind.INSTALL, ("KJV", "CrossWire", print))
    >>> a.identity() == b.identity()
    True
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from swordgate.core.exceptions import SignatureError
from swordgate.core.models import (
    AUTO,
    Auto,
    CanonicalRequest,
    OperationKind,
    SearchParameters,
    SearchScope,
    SearchType,
    is_valid_strongs_key,
)

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Argument roles. The value doubles as the accepted keyword name."""

    MODULE_CODE = "module_code"
    REPOSITORY = "repository"
    PROGRESS_CALLBACK = "progress_callback"
    SEARCH_TERM = "search_term"
    SEARCH_TYPE = "search_type"
    SEARCH_SCOPE = "search_scope"
    CASE_SENSITIVE = "case_sensitive"
    EXTENDED_BOUNDARIES = "extended_boundaries"
    WORD_BOUNDARY_FILTER = "word_boundary_filter"
    FORCE_REFRESH = "force_refresh"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


_EXPECTED = {
    Role.MODULE_CODE: "str",
    Role.REPOSITORY: "str or None",
    Role.PROGRESS_CALLBACK: "callable",
    Role.SEARCH_TERM: "str",
    Role.SEARCH_TYPE: "one of " + ", ".join(t.value for t in SearchType),
    Role.SEARCH_SCOPE: "one of " + ", ".join(s.value for s in SearchScope),
    Role.CASE_SENSITIVE: "bool",
    Role.EXTENDED_BOUNDARIES: "bool",
    Role.WORD_BOUNDARY_FILTER: "bool",
    Role.FORCE_REFRESH: "bool",
}

_BOOLEAN_ROLES = (
    Role.CASE_SENSITIVE,
    Role.EXTENDED_BOUNDARIES,
    Role.WORD_BOUNDARY_FILTER,
    Role.FORCE_REFRESH,
)


def _enum_value_score(enum_type: type[Enum], value: Any) -> int | None:
    if isinstance(value, enum_type):
        return 1
    if isinstance(value, str) and value in {member.value for member in enum_type}:
        return 1
    return None


def score_argument(role: Role, value: Any, is_repository: Callable[[str], bool]) -> int | None:
    """
    Score how well ``value`` fits ``role``.

    Returns:
        None when the value is incompatible with the role, otherwise a
        positive specificity score (higher means a more certain match)
    """
    if role is Role.MODULE_CODE or role is Role.SEARCH_TERM:
        return 1 if isinstance(value, str) else None
    if role is Role.REPOSITORY:
        if value is None or isinstance(value, Auto):
            return 2
        if isinstance(value, str):
            return 2 if is_repository(value) else 1
        return None
    if role is Role.PROGRESS_CALLBACK:
        return 1 if callable(value) else None
    if role is Role.SEARCH_TYPE:
        return _enum_value_score(SearchType, value)
    if role is Role.SEARCH_SCOPE:
        return _enum_value_score(SearchScope, value)
    if role in _BOOLEAN_ROLES:
        return 1 if isinstance(value, bool) else None
    return None


@dataclass(frozen=True)
class CallShape:
    """
    One accepted calling convention of an operation.

    Attributes:
        name: Identifier used in configuration and error messages
        roles: Role expected at each argument position
    """

    name: str
    roles: tuple[Role, ...]

    def describe(self, operation: str) -> str:
        return f"{operation}({', '.join(role.value for role in self.roles)})"


_MODULE_REPOSITORY_SHAPES = (
    CallShape("module_first", (Role.MODULE_CODE, Role.REPOSITORY)),
    CallShape("repository_first", (Role.REPOSITORY, Role.MODULE_CODE)),
)

DEFAULT_CALL_SHAPES: dict[OperationKind, tuple[CallShape, ...]] = {
    OperationKind.INSTALL: (
        CallShape("module_first", (Role.MODULE_CODE, Role.REPOSITORY, Role.PROGRESS_CALLBACK)),
        CallShape("repository_first", (Role.REPOSITORY, Role.MODULE_CODE, Role.PROGRESS_CALLBACK)),
        CallShape("module_progress", (Role.MODULE_CODE, Role.PROGRESS_CALLBACK)),
    ),
    OperationKind.UNINSTALL: _MODULE_REPOSITORY_SHAPES,
    OperationKind.DESCRIBE: _MODULE_REPOSITORY_SHAPES,
    OperationKind.CHECK_AVAILABILITY: _MODULE_REPOSITORY_SHAPES,
    OperationKind.LOOKUP_REPO_MODULE: _MODULE_REPOSITORY_SHAPES,
    OperationKind.LOOKUP_LOCAL_MODULE: (CallShape("module_only", (Role.MODULE_CODE,)),),
    OperationKind.SEARCH: (
        CallShape(
            "current",
            (
                Role.MODULE_CODE,
                Role.SEARCH_TERM,
                Role.PROGRESS_CALLBACK,
                Role.SEARCH_TYPE,
                Role.SEARCH_SCOPE,
                Role.CASE_SENSITIVE,
                Role.EXTENDED_BOUNDARIES,
                Role.WORD_BOUNDARY_FILTER,
            ),
        ),
        CallShape(
            "legacy",
            (
                Role.MODULE_CODE,
                Role.SEARCH_TERM,
                Role.SEARCH_TYPE,
                Role.CASE_SENSITIVE,
                Role.EXTENDED_BOUNDARIES,
                Role.PROGRESS_CALLBACK,
            ),
        ),
    ),
    OperationKind.UPDATE_CONFIG: (
        CallShape("force_first", (Role.FORCE_REFRESH, Role.PROGRESS_CALLBACK)),
        CallShape("progress_first", (Role.PROGRESS_CALLBACK,)),
    ),
}

REQUIRED_ROLES: dict[OperationKind, frozenset[Role]] = {
    kind: frozenset({Role.MODULE_CODE}) for kind in OperationKind
}
REQUIRED_ROLES[OperationKind.SEARCH] = frozenset({Role.MODULE_CODE, Role.SEARCH_TERM})
REQUIRED_ROLES[OperationKind.UPDATE_CONFIG] = frozenset()


def prefer_shape(shapes: Sequence[CallShape], name: str) -> tuple[CallShape, ...]:
    """Return ``shapes`` with the shape called ``name`` moved to the front."""
    preferred = [shape for shape in shapes if shape.name == name]
    return tuple(preferred + [shape for shape in shapes if shape.name != name])


@dataclass
class _Candidate:
    shape: CallShape
    bound: dict[Role, Any]
    score: int


class SignatureResolver:
    """
    Turns raw positional/keyword arguments into a CanonicalRequest.

    Args:
        shapes: Call-shape table per operation (defaults to DEFAULT_CALL_SHAPES)
        repository_names: Returns the repository names currently known to
            the engine; used to score repository candidates
        prefer_repository_first: Put ``repository_first`` shapes ahead of
            ``module_first`` ones for tie-breaking
        search_defaults: Defaults for search roles the caller leaves unset
    """

    def __init__(
        self,
        shapes: Mapping[OperationKind, Sequence[CallShape]] | None = None,
        repository_names: Callable[[], Iterable[str]] | None = None,
        prefer_repository_first: bool = False,
        search_defaults: Mapping[str, Any] | None = None,
    ) -> None:
        table = dict(shapes if shapes is not None else DEFAULT_CALL_SHAPES)
        if prefer_repository_first:
            table = {kind: prefer_shape(kind_shapes, "repository_first") for kind, kind_shapes in table.items()}
        self.shapes: dict[OperationKind, tuple[CallShape, ...]] = {
            kind: tuple(kind_shapes) for kind, kind_shapes in table.items()
        }
        self._repository_names = repository_names
        self.search_defaults = dict(search_defaults or {})

    def resolve(
        self,
        kind: OperationKind,
        args: Sequence[Any],
        kwargs: Mapping[str, Any] | None = None,
        operation: str | None = None,
    ) -> CanonicalRequest:
        """
        Resolve one call of ``kind`` into a CanonicalRequest.

        Args:
            kind: The operation being called
            args: Positional arguments as passed by the caller
            kwargs: Keyword arguments as passed by the caller
            operation: Public name of the operation, for error messages

        Returns:
            The canonical request

        Raises:
            SignatureError: If no declared call shape accepts the arguments
        """
        name = operation or kind.value
        kwargs = dict(kwargs or {})
        shapes = self.shapes.get(kind)
        if not shapes:
            raise SignatureError(name, f"no call shapes declared for {kind.value}")

        is_repository = self._repository_predicate()
        self._check_arity(name, shapes, args)
        self._check_positions(name, shapes, args, is_repository)
        keyword_roles = self._check_keywords(name, shapes, kwargs, is_repository)

        candidates: list[_Candidate] = []
        missing: set[Role] = set()
        for shape in shapes:
            candidate = self._match(kind, shape, args, keyword_roles, is_repository, missing)
            if candidate is not None:
                candidates.append(candidate)

        if not candidates:
            raise self._no_match_error(name, shapes, args, missing)

        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.score > best.score:
                best = candidate
        logger.debug(
            "Resolved %s%r via shape %s (score %d)",
            name,
            tuple(args),
            best.shape.name,
            best.score,
        )
        return self._build(kind, name, best)

    def _repository_predicate(self) -> Callable[[str], bool]:
        names: set[str] | None = None

        def is_repository(value: str) -> bool:
            nonlocal names
            if self._repository_names is None:
                return False
            if names is None:
                names = set(self._repository_names())
            return value in names

        return is_repository

    def _check_arity(self, name: str, shapes: Sequence[CallShape], args: Sequence[Any]) -> None:
        longest = max(len(shape.roles) for shape in shapes)
        if len(args) > longest:
            raise SignatureError(
                name,
                f"expected at most {longest} arguments, got {len(args)}",
                position=longest + 1,
            )

    def _check_positions(
        self,
        name: str,
        shapes: Sequence[CallShape],
        args: Sequence[Any],
        is_repository: Callable[[str], bool],
    ) -> None:
        # A value no shape accepts at its position fails right away, naming it.
        for index, value in enumerate(args):
            roles = []
            for shape in shapes:
                if index < len(shape.roles) and shape.roles[index] not in roles:
                    roles.append(shape.roles[index])
            if any(score_argument(role, value, is_repository) is not None for role in roles):
                continue
            expected = " or ".join(f"{role.label} ({_EXPECTED[role]})" for role in roles)
            raise SignatureError(
                name,
                f"argument {index + 1} must be {expected}, got {type(value).__name__}",
                position=index + 1,
            )

    def _check_keywords(
        self,
        name: str,
        shapes: Sequence[CallShape],
        kwargs: Mapping[str, Any],
        is_repository: Callable[[str], bool],
    ) -> dict[Role, Any]:
        known = {role for shape in shapes for role in shape.roles}
        keyword_roles: dict[Role, Any] = {}
        for key, value in kwargs.items():
            try:
                role = Role(key)
            except ValueError:
                raise SignatureError(name, f"unexpected keyword argument '{key}'") from None
            if role not in known:
                raise SignatureError(name, f"unexpected keyword argument '{key}'")
            if value is None and role is not Role.MODULE_CODE and role is not Role.SEARCH_TERM:
                # None for an optional keyword means "use the default".
                if role is Role.REPOSITORY:
                    keyword_roles[role] = None
                continue
            if score_argument(role, value, is_repository) is None:
                raise SignatureError(
                    name,
                    f"keyword argument '{key}' must be {_EXPECTED[role]}, got {type(value).__name__}",
                )
            keyword_roles[role] = value
        return keyword_roles

    def _match(
        self,
        kind: OperationKind,
        shape: CallShape,
        args: Sequence[Any],
        keyword_roles: Mapping[Role, Any],
        is_repository: Callable[[str], bool],
        missing: set[Role],
    ) -> _Candidate | None:
        if len(args) > len(shape.roles):
            return None

        bound: dict[Role, Any] = {}
        score = 0
        for role, value in zip(shape.roles, args):
            role_score = score_argument(role, value, is_repository)
            if role_score is None:
                return None
            bound[role] = value
            score += role_score

        for role, value in keyword_roles.items():
            if role not in shape.roles or role in bound:
                return None
            bound[role] = value
            if value is not None:
                score += score_argument(role, value, is_repository) or 0

        absent = REQUIRED_ROLES.get(kind, frozenset()) - bound.keys()
        if absent:
            missing.update(absent)
            return None
        return _Candidate(shape=shape, bound=bound, score=score)

    def _no_match_error(
        self,
        name: str,
        shapes: Sequence[CallShape],
        args: Sequence[Any],
        missing: set[Role],
    ) -> SignatureError:
        if missing:
            labels = ", ".join(sorted(role.label for role in missing))
            return SignatureError(name, f"missing required argument: {labels}")
        types = ", ".join(type(value).__name__ for value in args)
        accepted = " | ".join(shape.describe(name) for shape in shapes)
        return SignatureError(
            name,
            f"arguments ({types}) match no call shape; accepted: {accepted}",
        )

    def _build(self, kind: OperationKind, name: str, candidate: _Candidate) -> CanonicalRequest:
        bound = candidate.bound
        fields: dict[str, Any] = {"operation": kind}

        if Role.MODULE_CODE in bound:
            module_code = bound[Role.MODULE_CODE]
            if not module_code:
                raise SignatureError(
                    name,
                    "module code must be a non-empty string",
                    position=self._position(candidate.shape, Role.MODULE_CODE),
                )
            fields["module_code"] = module_code

        repository = bound.get(Role.REPOSITORY)
        fields["repository"] = AUTO if repository is None else repository

        callback = bound.get(Role.PROGRESS_CALLBACK)
        if callback is not None:
            fields["progress_callback"] = callback

        if kind is OperationKind.SEARCH:
            fields["search"] = self._search_parameters(name, candidate)
        if kind is OperationKind.UPDATE_CONFIG:
            fields["force_refresh"] = bool(bound.get(Role.FORCE_REFRESH, False))

        return CanonicalRequest(**fields)

    def _search_parameters(self, name: str, candidate: _Candidate) -> SearchParameters:
        bound = candidate.bound
        defaults = self.search_defaults

        def pick(role: Role, default_key: str, fallback: Any) -> Any:
            if role in bound and bound[role] is not None:
                return bound[role]
            return defaults.get(default_key, fallback)

        parameters = SearchParameters(
            term=bound[Role.SEARCH_TERM],
            search_type=SearchType(pick(Role.SEARCH_TYPE, "search_type", SearchType.PHRASE)),
            scope=SearchScope(pick(Role.SEARCH_SCOPE, "scope", SearchScope.BIBLE)),
            case_sensitive=pick(Role.CASE_SENSITIVE, "case_sensitive", False),
            extended_boundaries=pick(Role.EXTENDED_BOUNDARIES, "extended_boundaries", False),
            word_boundary_filter=pick(Role.WORD_BOUNDARY_FILTER, "word_boundary_filter", False),
        )
        if parameters.search_type is SearchType.STRONGS_NUMBER and not is_valid_strongs_key(
            parameters.term
        ):
            raise SignatureError(
                name,
                "The given search term is not a valid Strong's number!",
                position=self._position(candidate.shape, Role.SEARCH_TERM),
            )
        return parameters

    @staticmethod
    def _position(shape: CallShape, role: Role) -> int | None:
        if role in shape.roles:
            return shape.roles.index(role) + 1
        return None


__all__ = [
    "Role",
    "CallShape",
    "DEFAULT_CALL_SHAPES",
    "REQUIRED_ROLES",
    "SignatureResolver",
    "prefer_shape",
    "score_argument",
]
