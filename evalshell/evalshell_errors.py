"""
The closed set of exceptions the execution loop reports to its host.

Everything the loop observes is translated into one of these kinds by
`normalize()` before it reaches calling code:

  - BreakSignal          stop the loop quietly
  - PropagatingSignal    stop the loop and re-raise to its caller
  - TypeMismatchFailure  a TypeError raised by evaluated code
  - RuntimeFailure       any other error raised by evaluated code
  - DomainFailure        base of all of the above; passes through untouched
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class DomainFailure(Exception):
    """Base class for every exception the shell knows how to report."""

    def __init__(self, message: str = "", original: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original = original

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


class BreakSignal(DomainFailure):
    """Exit the loop without raising further (`exit`, Ctrl+D, `SystemExit`)."""

    def __init__(self, message: str = "Goodbye", original: Optional[BaseException] = None, code=None):
        super().__init__(message, original)
        self.code = code

    @classmethod
    def from_system_exit(cls, e: SystemExit) -> 'BreakSignal':
        code = e.code
        msg = "Goodbye" if code in (None, 0) else f"Exit: {code}"
        return cls(msg, original=e, code=code)


class PropagatingSignal(DomainFailure):
    """Exit the loop and re-raise to whoever started it (`throw-up`)."""

    @classmethod
    def from_exception(cls, e: Optional[BaseException]) -> 'PropagatingSignal':
        if e is None:
            return cls("Throwing up")
        inner = e.original if isinstance(e, DomainFailure) and e.original is not None else e
        sig = cls(f"Throwing {type(inner).__name__}: {inner}", original=inner)
        sig.__cause__ = inner
        return sig


def _describe(e: BaseException) -> str:
    text = str(e)
    return f"{type(e).__name__}: {text}" if text else type(e).__name__


class TypeMismatchFailure(DomainFailure):
    """A TypeError raised while evaluating a fragment."""

    @classmethod
    def from_type_error(cls, e: TypeError) -> 'TypeMismatchFailure':
        return cls(_describe(e), original=e)


class RuntimeFailure(DomainFailure):
    """Any other error raised while evaluating a fragment."""

    def __init__(self, message: str = "", original: Optional[BaseException] = None,
                 filename: Optional[str] = None, lineno: Optional[int] = None):
        super().__init__(message, original)
        self.filename = filename
        self.lineno = lineno

    @classmethod
    def from_error(cls, e: BaseException) -> 'RuntimeFailure':
        filename = getattr(e, 'filename', None) if isinstance(e, SyntaxError) else None
        lineno = getattr(e, 'lineno', None) if isinstance(e, SyntaxError) else None
        return cls(_describe(e), original=e, filename=filename, lineno=lineno)

    @classmethod
    def from_warning(cls, message, category, filename=None, lineno=None) -> 'RuntimeFailure':
        name = getattr(category, '__name__', 'Warning')
        return cls(f"{name}: {message}", filename=filename, lineno=lineno)


def normalize(e: BaseException) -> DomainFailure:
    """Translate a raw exception from evaluated code into the taxonomy.

    Exceptions that are not failures of the evaluated code (GeneratorExit,
    asyncio.CancelledError, ...) are not translated; callers must let them
    propagate.
    """
    match e:
        case DomainFailure():
            return e
        case TypeError():
            failure = TypeMismatchFailure.from_type_error(e)
        case SystemExit():
            failure = BreakSignal.from_system_exit(e)
        case KeyboardInterrupt():
            failure = RuntimeFailure("Interrupted", original=e)
        case Exception():
            failure = RuntimeFailure.from_error(e)
        case _:
            raise TypeError(f"cannot normalize {type(e).__name__}") from e
    failure.__cause__ = e
    logger.debug("normalized %s -> %s", type(e).__name__, failure.kind)
    return failure
