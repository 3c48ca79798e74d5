"""Error types raised by the stamp core.

Every error carries an ``exit_code`` so the CLI can map a failure to a
process exit status without inspecting messages.
"""

from pathlib import Path
from typing import Optional


class StampError(Exception):
    """Base class for all stamp errors."""

    exit_code = 1


class NotFoundError(StampError):
    """A template or registry entry does not exist."""

    exit_code = 2


class AmbiguousError(StampError):
    """More than one template matches a name."""

    exit_code = 3

    def __init__(self, name: str, paths: list):
        self.name = name
        self.paths = list(paths)
        listed = ", ".join(str(p) for p in self.paths)
        super().__init__(f"Template '{name}' is ambiguous: {listed}")


class InvalidDescriptorError(StampError):
    """A template's metadata file is malformed."""

    exit_code = 4

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid descriptor {path}: {reason}")


class MissingAnswerError(StampError):
    """A question has no answer, or a template references an unknown name."""

    exit_code = 5

    def __init__(self, name: str, detail: Optional[str] = None):
        self.name = name
        message = f"No answer for '{name}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InvalidAnswerError(StampError):
    """A supplied answer does not fit its question."""

    exit_code = 5


class UnknownVariableError(StampError):
    """An interpolation marker references an id that has no answer."""

    exit_code = 6

    def __init__(self, name: str, segment: str):
        self.name = name
        self.segment = segment
        super().__init__(f"Unknown variable '{name}' in path segment '{segment}'")


class UnsupportedValueTypeError(StampError):
    """A multi-select answer was used inside a path segment."""

    exit_code = 6


class InvalidPathSegmentError(StampError):
    """Interpolation produced a segment that is not a plain path component."""

    exit_code = 6


class TemplateSyntaxError(StampError):
    """The templating engine could not parse a marked file."""

    exit_code = 7

    def __init__(self, file_name: str, message: str, lineno: Optional[int] = None):
        self.file_name = file_name
        self.lineno = lineno
        location = f"{file_name}:{lineno}" if lineno else file_name
        super().__init__(f"Template syntax error in {location}: {message}")


class TemplateRenderError(TemplateSyntaxError):
    """A marked file parsed but failed while rendering."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.lineno = None
        StampError.__init__(self, f"Template render error in {file_name}: {message}")


class AlreadyExistsError(StampError):
    """A destination entry already exists."""

    exit_code = 8

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Destination already exists: {path}")


class StampIOError(StampError):
    """Filesystem failure while reading templates or writing output."""

    exit_code = 9

    def __init__(self, path: Path, error: OSError):
        self.path = path
        self.error = error
        super().__init__(f"I/O error at {path}: {error.strerror or error}")


class NestedDestinationError(StampError):
    """The destination lies inside the template being rendered."""

    exit_code = 10

    def __init__(self, source: Path, destination: Path):
        self.source = source
        self.destination = destination
        super().__init__(
            f"Destination {destination} is inside the template directory {source}"
        )
