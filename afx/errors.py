"""Error types and formatting utilities for consistent error messages.

This module provides the exception taxonomy used across afx and helper
functions for formatting user-facing messages consistently.

Error Style Guide:
- User-facing errors use 'Error: ' prefix
- Field errors use structured format: '<entity> field '<field>' <issue>'
- Use present tense: 'must be', 'is required'
- Per-package errors start with the package name: '<name>: <what failed>'
"""

from typing import Iterable, Iterator


class AfxError(Exception):
    """Base class for every error raised by afx."""


class ConfigError(AfxError):
    """Raised when a config file is malformed or packages are invalid."""


class StateError(AfxError):
    """Raised when the state file cannot be read or written."""


class _OutputError(AfxError):
    """An error carrying the captured stderr of a child process."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        message = super().__str__()
        if self.stderr:
            return f"{message}\n{self.stderr.rstrip()}"
        return message


class FetchError(_OutputError):
    """Raised when a clone or a download fails."""


class BuildError(_OutputError):
    """Raised when a build step exits non-zero.

    The captured stderr of the failing step is kept in ``stderr``.
    """


class LinkError(AfxError):
    """Raised when a link glob is ambiguous or a symlink cannot be created."""


class AssetNotFound(AfxError):
    """Raised when no release asset can be selected."""


class Cancelled(AfxError):
    """Raised when an operation stops because the run was interrupted."""


class PromptError(AfxError):
    """Raised when an interactive prompt is aborted."""


class TemplateError(AfxError):
    """Raised when a template cannot be parsed or evaluated."""


class MultiError(AfxError):
    """Accumulates several errors and reports them as one.

    Nested MultiErrors are flattened one level when appended, and ``None``
    values are ignored so callers can append results unconditionally.
    """

    def __init__(self, errors: Iterable[BaseException | None] = ()):
        super().__init__()
        self._errors: list[BaseException] = []
        self.append(*errors)

    def append(self, *errors: BaseException | None) -> None:
        for err in errors:
            if err is None:
                continue
            if isinstance(err, MultiError):
                self._errors.extend(err.errors)
            else:
                self._errors.append(err)

    def prepend(self, err: BaseException) -> None:
        self._errors.insert(0, err)

    @property
    def errors(self) -> list[BaseException]:
        return list(self._errors)

    def error_or_none(self) -> "MultiError | None":
        if not self._errors:
            return None
        return self

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __str__(self) -> str:
        if not self._errors:
            return ""
        if len(self._errors) == 1:
            return str(self._errors[0])
        lines = [f"{len(self._errors)} errors occurred:"]
        for i, err in enumerate(self._errors, 1):
            text = str(err) or type(err).__name__
            first, *rest = text.split("\n")
            lines.append(f"  {i}. {first}")
            lines.extend(f"     {line}" for line in rest)
        return "\n".join(lines)


def format_error(message: str) -> str:
    """Format an error message with consistent prefix.

    Examples:
        >>> format_error("state file is broken")
        'Error: state file is broken'
    """
    return f"Error: {message}"


def format_field_error(entity: str, field: str, issue: str) -> str:
    """Format a field validation error with structured format.

    Examples:
        >>> format_field_error("github 'fzf'", "owner", "is required")
        "github 'fzf' field 'owner' is required"
    """
    return f"{entity} field '{field}' {issue}"


def format_suggestion(message: str, suggestion: str) -> str:
    """Format an error message with a helpful suggestion.

    Examples:
        >>> format_suggestion("no packages found", "add a YAML file under ~/.config/afx")
        'Error: no packages found. Hint: add a YAML file under ~/.config/afx'
    """
    return f"{format_error(message)}. Hint: {suggestion}"


__all__ = [
    "AfxError",
    "ConfigError",
    "StateError",
    "FetchError",
    "BuildError",
    "LinkError",
    "AssetNotFound",
    "Cancelled",
    "PromptError",
    "TemplateError",
    "MultiError",
    "format_error",
    "format_field_error",
    "format_suggestion",
]
