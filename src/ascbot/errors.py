"""
Typed command errors.

Commands abort by raising a :class:`CommandError` subclass carrying an error
code from :data:`ascbot.util.responses.COMMAND_ERRORS` plus the arguments that
are interpolated into its text. The dispatcher renders ``error.message`` back
to the invoking channel; anything that is not a ``CommandError`` is treated as
an unexpected failure.
"""

from __future__ import annotations

from enum import Enum

from ascbot.util.responses import render_command_error


class ErrorKind(Enum):
    """Error taxonomy shared by every command."""

    VALIDATION = "validation"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"


class CommandError(Exception):
    """Base class for user-facing command failures."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, code: str, *params) -> None:
        self.code = code
        self.params = params
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return render_command_error(self.code, *self.params)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, {', '.join(map(repr, self.params))})"


class ValidationError(CommandError):
    """A missing or malformed argument or flag."""

    kind = ErrorKind.VALIDATION


class PermissionDeniedError(CommandError):
    """The actor lacks a capability or a target is not manageable."""

    kind = ErrorKind.PERMISSION


class NotFoundError(CommandError):
    """An entity reference could not be resolved."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(CommandError):
    """The requested state already holds (already banned, already configured, ...)."""

    kind = ErrorKind.CONFLICT


class WizardTimeoutError(CommandError):
    """An interactive prompt was not answered in time."""

    kind = ErrorKind.TIMEOUT


class TransportError(CommandError):
    """A chat platform call failed."""

    kind = ErrorKind.TRANSPORT
