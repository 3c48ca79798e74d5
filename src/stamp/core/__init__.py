"""Core modules for stamp.

This package contains the template application engine used by every
command:
- descriptor: Template metadata and questions
- answers: Question resolution and prompting
- paths: Answer substitution in file and directory names
- content: Rendering of marked file contents
- walker: Template tree rendering
- registry: Registered source roots and template discovery
"""

from stamp.core.errors import (
    StampError,
    NotFoundError,
    AmbiguousError,
    InvalidDescriptorError,
    MissingAnswerError,
    InvalidAnswerError,
    UnknownVariableError,
    UnsupportedValueTypeError,
    InvalidPathSegmentError,
    TemplateSyntaxError,
    TemplateRenderError,
    AlreadyExistsError,
    StampIOError,
    NestedDestinationError,
)

from stamp.core.config import (
    StampConfig,
    load_config,
    default_config_dir,
    registry_path,
)

from stamp.core.descriptor import (
    TemplateDescriptor,
    StringQuestion,
    SelectQuestion,
    MultiSelectQuestion,
    MultiSelectChoice,
    load_descriptor,
)

from stamp.core.answers import (
    TextAnswer,
    ChoiceAnswer,
    ChoicesAnswer,
    RichPrompter,
    resolve_answers,
    parse_answers,
    answers_to_context,
)

from stamp.core.paths import interpolate_path
from stamp.core.content import ContentRenderer, JinjaEngine
from stamp.core.walker import RenderReport, render_tree

from stamp.core.registry import (
    Registry,
    DiscoveredTemplate,
    Discovery,
)

__all__ = [
    # Errors
    "StampError",
    "NotFoundError",
    "AmbiguousError",
    "InvalidDescriptorError",
    "MissingAnswerError",
    "InvalidAnswerError",
    "UnknownVariableError",
    "UnsupportedValueTypeError",
    "InvalidPathSegmentError",
    "TemplateSyntaxError",
    "TemplateRenderError",
    "AlreadyExistsError",
    "StampIOError",
    "NestedDestinationError",
    # Config
    "StampConfig",
    "load_config",
    "default_config_dir",
    "registry_path",
    # Descriptor
    "TemplateDescriptor",
    "StringQuestion",
    "SelectQuestion",
    "MultiSelectQuestion",
    "MultiSelectChoice",
    "load_descriptor",
    # Answers
    "TextAnswer",
    "ChoiceAnswer",
    "ChoicesAnswer",
    "RichPrompter",
    "resolve_answers",
    "parse_answers",
    "answers_to_context",
    # Rendering
    "interpolate_path",
    "ContentRenderer",
    "JinjaEngine",
    "RenderReport",
    "render_tree",
    # Registry
    "Registry",
    "DiscoveredTemplate",
    "Discovery",
]
