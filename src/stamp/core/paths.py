"""Answer substitution in file and directory names.

Each segment of a relative path may contain ``{{ id }}`` markers. A marker
is replaced by the answer's text; the result must still be a single plain
path component so rendered output stays inside the destination root.
"""

import os
import re
from pathlib import PurePath, PurePosixPath
from typing import Mapping, Union

from stamp.core.answers import Answer, ChoiceAnswer, ChoicesAnswer, TextAnswer
from stamp.core.errors import (
    InvalidPathSegmentError,
    UnknownVariableError,
    UnsupportedValueTypeError,
)

MARKER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_\-]*)\s*\}\}")

_SEPARATORS = {"/", "\\", os.sep} | ({os.altsep} if os.altsep else set())


def has_markers(segment: str) -> bool:
    return MARKER_RE.search(segment) is not None


def interpolate_segment(segment: str, answers: Mapping[str, Answer]) -> str:
    """Substitute answers into one path segment."""

    def substitute(match: "re.Match") -> str:
        name = match.group(1)
        if name not in answers:
            raise UnknownVariableError(name, segment)
        answer = answers[name]
        if isinstance(answer, ChoicesAnswer):
            raise UnsupportedValueTypeError(
                f"'{name}' is a multi-select answer and cannot be used in "
                f"path segment '{segment}'"
            )
        if not isinstance(answer, (TextAnswer, ChoiceAnswer)):
            raise TypeError(f"Unknown answer kind: {type(answer).__name__}")
        value = answer.value
        if any(sep in value for sep in _SEPARATORS):
            raise InvalidPathSegmentError(
                f"Answer '{name}' = {value!r} contains a path separator"
            )
        return value

    result = MARKER_RE.sub(substitute, segment)
    if result in ("", ".", ".."):
        raise InvalidPathSegmentError(
            f"Path segment '{segment}' renders to {result!r}"
        )
    return result


def interpolate_path(
    relative_path: Union[str, PurePath],
    answers: Mapping[str, Answer],
) -> PurePosixPath:
    """Substitute answers into every segment of ``relative_path``.

    Raises:
        UnknownVariableError: Marker references an id with no answer
        UnsupportedValueTypeError: Marker references a multi-select answer
        InvalidPathSegmentError: Path or substituted value would leave the
            destination root
    """
    path = PurePath(relative_path)
    if path.is_absolute() or path.anchor:
        raise InvalidPathSegmentError(f"Expected a relative path, got '{relative_path}'")

    segments = []
    for part in path.parts:
        if part == "..":
            raise InvalidPathSegmentError(f"Path '{relative_path}' leaves its root")
        if part == ".":
            continue
        segments.append(interpolate_segment(part, answers) if has_markers(part) else part)

    return PurePosixPath(*segments)
