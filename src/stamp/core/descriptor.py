"""Template descriptors and the questions they declare.

A template root may contain a metadata file (``stamp.yaml`` by default)::

    meta:
      name: axum-server
      description: Axum web server
    questions:
      - type: string
        id: crate_name
        default: example
      - type: select
        id: license
        options: [MIT, Apache-2.0]
        default: MIT
      - type: multiselect
        id: features
        choices:
          - {id: ws, prompt: WebSocket support, default: true}

The older flat layout (``name``, ``description`` and a ``variables``
mapping of id -> {description, default}) is still accepted; each variable
becomes a string question.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union, List, Any

import yaml

from stamp.core.errors import InvalidDescriptorError

DEFAULT_METADATA_FILE = "stamp.yaml"


# =============================================================================
# Questions
# =============================================================================

@dataclass(frozen=True)
class StringQuestion:
    """Free-text question."""
    id: str
    prompt: str
    default: Optional[str] = None


@dataclass(frozen=True)
class SelectQuestion:
    """Pick exactly one of ``options``."""
    id: str
    prompt: str
    options: Tuple[str, ...]
    default: Optional[str] = None


@dataclass(frozen=True)
class MultiSelectChoice:
    """One toggle of a multi-select question."""
    id: str
    prompt: str
    default: bool = False


@dataclass(frozen=True)
class MultiSelectQuestion:
    """Toggle any subset of ``choices``."""
    id: str
    prompt: str
    choices: Tuple[MultiSelectChoice, ...]


Question = Union[StringQuestion, SelectQuestion, MultiSelectQuestion]

QUESTION_TYPES = ("string", "select", "multiselect")


def question_to_dict(question: Question) -> dict:
    """Serialize a question in the canonical metadata layout."""
    if isinstance(question, StringQuestion):
        data = {"type": "string", "id": question.id, "prompt": question.prompt}
        if question.default is not None:
            data["default"] = question.default
        return data
    if isinstance(question, SelectQuestion):
        data = {
            "type": "select",
            "id": question.id,
            "prompt": question.prompt,
            "options": list(question.options),
        }
        if question.default is not None:
            data["default"] = question.default
        return data
    if isinstance(question, MultiSelectQuestion):
        return {
            "type": "multiselect",
            "id": question.id,
            "prompt": question.prompt,
            "choices": [
                {"id": c.id, "prompt": c.prompt, "default": c.default}
                for c in question.choices
            ],
        }
    raise TypeError(f"Unknown question kind: {type(question).__name__}")


# =============================================================================
# Descriptor
# =============================================================================

@dataclass
class TemplateDescriptor:
    """Parsed metadata of a template."""
    name: Optional[str] = None
    description: Optional[str] = None
    questions: List[Question] = field(default_factory=list)

    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> dict:
        """Convert to the canonical metadata layout."""
        data: dict = {}
        meta = {}
        if self.name is not None:
            meta["name"] = self.name
        if self.description is not None:
            meta["description"] = self.description
        if meta:
            data["meta"] = meta
        data["questions"] = [question_to_dict(q) for q in self.questions]
        return data


# =============================================================================
# Loading
# =============================================================================

def load_descriptor(
    template_dir: Path,
    metadata_file: str = DEFAULT_METADATA_FILE,
) -> TemplateDescriptor:
    """Load the descriptor of the template rooted at ``template_dir``.

    A missing metadata file is valid and yields a descriptor without
    questions.

    Raises:
        InvalidDescriptorError: If the file cannot be read or parsed, or
            violates a question invariant.
    """
    path = Path(template_dir) / metadata_file
    if not path.is_file():
        return TemplateDescriptor()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidDescriptorError(path, str(e)) from e
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidDescriptorError(path, str(e)) from e

    return parse_descriptor(data, path)


def parse_descriptor(data: Any, path: Path) -> TemplateDescriptor:
    """Build a descriptor from already-parsed metadata."""
    if data is None:
        return TemplateDescriptor()
    if not isinstance(data, dict):
        raise InvalidDescriptorError(path, "top level must be a mapping")

    if "variables" in data:
        if "questions" in data:
            raise InvalidDescriptorError(
                path, "'variables' and 'questions' cannot be combined"
            )
        descriptor = _parse_legacy(data, path)
    else:
        meta = data.get("meta") or {}
        if not isinstance(meta, dict):
            raise InvalidDescriptorError(path, "'meta' must be a mapping")
        raw_questions = data.get("questions") or []
        if not isinstance(raw_questions, list):
            raise InvalidDescriptorError(path, "'questions' must be a list")
        descriptor = TemplateDescriptor(
            name=_optional_str(meta, "name", path),
            description=_optional_str(meta, "description", path),
            questions=[
                _parse_question(raw, index, path)
                for index, raw in enumerate(raw_questions)
            ],
        )

    _check_unique_ids(descriptor, path)
    return descriptor


def _parse_legacy(data: dict, path: Path) -> TemplateDescriptor:
    variables = data.get("variables") or {}
    if not isinstance(variables, dict):
        raise InvalidDescriptorError(path, "'variables' must be a mapping")

    questions: List[Question] = []
    for key, entry in variables.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise InvalidDescriptorError(path, f"variable '{key}' must be a mapping")
        description = _optional_str(entry, "description", path)
        questions.append(StringQuestion(
            id=str(key),
            prompt=f"{key}: {description}" if description else str(key),
            default=_optional_str(entry, "default", path),
        ))

    return TemplateDescriptor(
        name=_optional_str(data, "name", path),
        description=_optional_str(data, "description", path),
        questions=questions,
    )


def _parse_question(raw: Any, index: int, path: Path) -> Question:
    if not isinstance(raw, dict):
        raise InvalidDescriptorError(path, f"question #{index + 1} must be a mapping")

    question_id = raw.get("id")
    if not isinstance(question_id, str) or not question_id:
        raise InvalidDescriptorError(path, f"question #{index + 1} needs a string 'id'")

    kind = str(raw.get("type", "string")).lower()
    prompt = _optional_str(raw, "prompt", path) or question_id

    if kind == "string":
        return StringQuestion(
            id=question_id,
            prompt=prompt,
            default=_optional_str(raw, "default", path),
        )

    if kind == "select":
        options = raw.get("options")
        if not isinstance(options, list) or not options:
            raise InvalidDescriptorError(
                path, f"select '{question_id}' needs a non-empty 'options' list"
            )
        options = [str(o) for o in options]
        if len(set(options)) != len(options):
            raise InvalidDescriptorError(
                path, f"select '{question_id}' has duplicate options"
            )
        default = _optional_str(raw, "default", path)
        if default is not None and default not in options:
            raise InvalidDescriptorError(
                path,
                f"select '{question_id}' default '{default}' is not one of its options",
            )
        return SelectQuestion(
            id=question_id,
            prompt=prompt,
            options=tuple(options),
            default=default,
        )

    if kind == "multiselect":
        raw_choices = raw.get("choices")
        if not isinstance(raw_choices, list) or not raw_choices:
            raise InvalidDescriptorError(
                path, f"multiselect '{question_id}' needs a non-empty 'choices' list"
            )
        choices = []
        seen = set()
        for raw_choice in raw_choices:
            choice = _parse_choice(raw_choice, question_id, path)
            if choice.id in seen:
                raise InvalidDescriptorError(
                    path, f"multiselect '{question_id}' repeats choice '{choice.id}'"
                )
            seen.add(choice.id)
            choices.append(choice)
        return MultiSelectQuestion(
            id=question_id,
            prompt=prompt,
            choices=tuple(choices),
        )

    raise InvalidDescriptorError(
        path,
        f"question '{question_id}' has unknown type '{kind}' "
        f"(expected one of {', '.join(QUESTION_TYPES)})",
    )


def _parse_choice(raw: Any, question_id: str, path: Path) -> MultiSelectChoice:
    # A bare string is shorthand for a choice that starts off
    if isinstance(raw, str):
        return MultiSelectChoice(id=raw, prompt=raw)
    if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
        raise InvalidDescriptorError(
            path, f"multiselect '{question_id}' choices need a string 'id'"
        )
    default = raw.get("default", False)
    if not isinstance(default, bool):
        raise InvalidDescriptorError(
            path,
            f"multiselect '{question_id}' choice '{raw['id']}' default must be true or false",
        )
    return MultiSelectChoice(
        id=raw["id"],
        prompt=_optional_str(raw, "prompt", path) or raw["id"],
        default=default,
    )


def _optional_str(data: dict, key: str, path: Path) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise InvalidDescriptorError(path, f"'{key}' must be a scalar")
    return str(value)


def _check_unique_ids(descriptor: TemplateDescriptor, path: Path) -> None:
    seen = set()
    for question in descriptor.questions:
        if question.id in seen:
            raise InvalidDescriptorError(path, f"duplicate question id '{question.id}'")
        seen.add(question.id)
