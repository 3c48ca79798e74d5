"""File content rendering.

Files whose name contains the template marker (``.j2`` by default, so
``main.rs.j2`` or ``README.j2.md``) are rendered through the templating
engine and written without the marker. Every other file is copied as-is.
"""

import re
from typing import Mapping, Protocol, Tuple

import jinja2

from stamp.core.answers import Answer, answers_to_context
from stamp.core.errors import (
    InvalidPathSegmentError,
    MissingAnswerError,
    TemplateRenderError,
    TemplateSyntaxError,
)

DEFAULT_MARKER = ".j2"

_UNDEFINED_RE = re.compile(r"'([^']+)' is undefined")


class TemplateEngine(Protocol):
    """Renders template source with a context."""

    def render(self, source: str, context: dict, name: str) -> str:
        ...


class JinjaEngine:
    """Templating engine backed by jinja2."""

    def __init__(self) -> None:
        self.env = jinja2.Environment(
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, source: str, context: dict, name: str) -> str:
        try:
            template = self.env.from_string(source)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateSyntaxError(name, e.message or str(e), e.lineno) from e

        try:
            return template.render(**context)
        except jinja2.UndefinedError as e:
            match = _UNDEFINED_RE.search(str(e))
            if match is None:
                # Attribute or item lookup on a defined value
                raise TemplateRenderError(name, str(e)) from e
            raise MissingAnswerError(match.group(1), f"referenced by {name}") from e
        except jinja2.TemplateSyntaxError as e:
            raise TemplateSyntaxError(name, e.message or str(e), e.lineno) from e
        except Exception as e:
            # Template expressions can raise anything: 1 / 0, "a" + 1, includes
            raise TemplateRenderError(name, f"{type(e).__name__}: {e}") from e


class ContentRenderer:
    """Decides per file whether to render or copy, and what to call it.

    Marking is always decided on the template's own file name, before any
    answer is substituted into it.
    """

    def __init__(self, engine: TemplateEngine = None, marker: str = DEFAULT_MARKER):
        if not marker:
            raise ValueError("Template marker must not be empty")
        self.engine = engine or JinjaEngine()
        self.marker = marker

    def is_marked(self, file_name: str) -> bool:
        return self.marker in file_name

    def output_name(self, file_name: str) -> str:
        if not self.is_marked(file_name):
            return file_name
        stripped = file_name.replace(self.marker, "", 1)
        if stripped in ("", ".", ".."):
            raise InvalidPathSegmentError(
                f"'{file_name}' is not a usable name once the "
                f"'{self.marker}' marker is removed"
            )
        return stripped

    def render(
        self,
        data: bytes,
        file_name: str,
        answers: Mapping[str, Answer],
    ) -> Tuple[bytes, str]:
        """Return the output bytes and output file name for one file.

        ``file_name`` is the name in the template, before interpolation.
        """
        if not self.is_marked(file_name):
            return data, file_name

        try:
            source = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TemplateSyntaxError(file_name, f"not valid UTF-8 ({e.reason})") from e

        rendered = self.engine.render(source, answers_to_context(answers), file_name)
        return rendered.encode("utf-8"), self.output_name(file_name)
