"""
Exceptions raised by the swordgate interface layer.

Every error surfaces through exactly one channel per operation style:
a rejected future for asynchronous operations, a synchronous raise for
accessors. The error kind tells local failures (bad arguments, a busy
exclusive operation) apart from remote ones (engine failure, cancellation).

Exception Hierarchy:
    SwordgateError (base)
    ├── SignatureError (arguments match no declared call shape)
    ├── OperationInProgressError (exclusive operation already running)
    ├── EngineFailure (engine reported failure, code kept verbatim)
    ├── OperationCancelledError (cancellable operation was terminated)
    ├── NotFoundError (module or repository absent)
    └── UnlockKeyError (engine refused to store an unlock key)

Example:
    >>> from swordgate.core.exceptions import EngineFailure
    >>> try:
    ...     await sword.install_module("KJV")
    ... except EngineFailure as e:
    ...     print(f"install failed with engine code {e.code}")
"""

from typing import Any


class SwordgateError(Exception):
    """
    Base exception for all swordgate errors.

    Attributes:
        message: Human-readable error message
        context: Dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class SignatureError(SwordgateError):
    """
    Raised when an argument list matches none of an operation's call shapes.

    Attributes:
        operation: Name of the public operation that was called
        position: 1-based index of the offending argument, if one could be
            singled out
    """

    def __init__(
        self,
        operation: str,
        message: str,
        position: int | None = None,
        **context: object,
    ) -> None:
        super().__init__(message, operation=operation, position=position, **context)
        self.operation = operation
        self.position = position

    def __str__(self) -> str:
        return f"{self.operation}: {self.message}"


class OperationInProgressError(SwordgateError):
    """
    Raised when a mutually exclusive operation is already running.

    The rejected request is never queued or merged with the running one.
    """

    MESSAGE = "Module search in progress. Wait until it is finished."

    def __init__(self, operation: str, **context: object) -> None:
        super().__init__(self.MESSAGE, operation=operation, **context)
        self.operation = operation


class EngineFailure(SwordgateError):
    """
    The engine's own failure signal.

    Attributes:
        operation: Operation that failed
        code: The engine's failure value, unchanged (an int status code,
            ``False``, a status mapping, or the exception the engine raised)
    """

    def __init__(self, operation: str, code: Any, message: str | None = None) -> None:
        if message is None:
            message = f"Engine reported failure for {operation} (code: {code!r})"
        super().__init__(message, operation=operation, code=code)
        self.operation = operation
        self.code = code


class OperationCancelledError(SwordgateError):
    """
    A cancellable operation was terminated before natural completion.

    Attributes:
        operation: Operation that was cancelled
        code: The engine's cancellation status code
    """

    def __init__(self, operation: str, code: Any = None) -> None:
        super().__init__(
            f"{operation} was cancelled before completion",
            operation=operation,
            code=code,
        )
        self.operation = operation
        self.code = code


class NotFoundError(SwordgateError):
    """
    A requested module or repository does not exist.

    Attributes:
        kind: What was looked up ("module" or "repository")
        name: The identifier that could not be found
    """

    def __init__(self, kind: str, name: str, **context: object) -> None:
        super().__init__(f"{kind.capitalize()} '{name}' not found", kind=kind, name=name, **context)
        self.kind = kind
        self.name = name


class UnlockKeyError(SwordgateError):
    """Raised when the engine rejects a module unlock key."""

    MESSAGES = {
        -1: "Invalid parameter",
        -2: "Section cipherKey not found in config file!",
        -3: "Module file not found!",
    }

    def __init__(self, module_code: str, code: int) -> None:
        super().__init__(
            self.MESSAGES.get(code, "Unknown error!"),
            module_code=module_code,
            code=code,
        )
        self.module_code = module_code
        self.code = code


__all__ = [
    "SwordgateError",
    "SignatureError",
    "OperationInProgressError",
    "EngineFailure",
    "OperationCancelledError",
    "NotFoundError",
    "UnlockKeyError",
]
