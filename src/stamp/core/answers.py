"""Answers to template questions.

Answers are resolved in the order questions are declared. Pre-supplied
answers skip prompting; anything left is asked through a ``Prompter``.
Without a prompter the resolver is non-interactive and a question with no
supplied answer is an error (unless declared defaults are accepted).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple, Union, Protocol

from rich.console import Console
from rich.prompt import Confirm, Prompt

from stamp.core.descriptor import (
    MultiSelectQuestion,
    Question,
    SelectQuestion,
    StringQuestion,
    TemplateDescriptor,
)
from stamp.core.errors import InvalidAnswerError, MissingAnswerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextAnswer:
    value: str


@dataclass(frozen=True)
class ChoiceAnswer:
    value: str


@dataclass(frozen=True)
class ChoicesAnswer:
    # Selected choice ids, in declared choice order
    values: Tuple[str, ...]


Answer = Union[TextAnswer, ChoiceAnswer, ChoicesAnswer]
AnswerMap = Dict[str, Answer]


class Prompter(Protocol):
    """Interactive source of answers."""

    def ask(self, question: Question) -> Answer:
        ...


# =============================================================================
# Resolution
# =============================================================================

def resolve_answers(
    descriptor: TemplateDescriptor,
    presupplied: Optional[Mapping[str, Answer]] = None,
    prompter: Optional[Prompter] = None,
    use_defaults: bool = False,
) -> AnswerMap:
    """Produce an answer for every question of ``descriptor``.

    Args:
        descriptor: Template whose questions are resolved
        presupplied: Answers that skip prompting, keyed by question id
        prompter: Interactive prompter; None means non-interactive
        use_defaults: Accept declared defaults when non-interactive

    Returns:
        AnswerMap covering every declared question id

    Raises:
        MissingAnswerError: If a question cannot be answered
        InvalidAnswerError: If a supplied answer does not fit its question
    """
    presupplied = dict(presupplied or {})
    declared = set(descriptor.question_ids())
    for extra in sorted(set(presupplied) - declared):
        logger.warning("Ignoring answer for undeclared question '%s'", extra)

    answers: AnswerMap = {}
    for question in descriptor.questions:
        if question.id in presupplied:
            answer = presupplied[question.id]
            validate_answer(question, answer)
            logger.debug("Using supplied answer for '%s'", question.id)
        elif prompter is not None:
            answer = prompter.ask(question)
            validate_answer(question, answer)
        elif use_defaults:
            answer = default_answer(question)
            if answer is None:
                raise MissingAnswerError(question.id, "no default declared")
        else:
            raise MissingAnswerError(question.id, "not supplied and input is disabled")
        answers[question.id] = answer

    return answers


def default_answer(question: Question) -> Optional[Answer]:
    """Answer built from a question's declared defaults, if any."""
    if isinstance(question, StringQuestion):
        return TextAnswer(question.default) if question.default is not None else None
    if isinstance(question, SelectQuestion):
        return ChoiceAnswer(question.default) if question.default is not None else None
    if isinstance(question, MultiSelectQuestion):
        return ChoicesAnswer(tuple(c.id for c in question.choices if c.default))
    raise TypeError(f"Unknown question kind: {type(question).__name__}")


def validate_answer(question: Question, answer: Answer) -> None:
    """Check that ``answer`` is the right kind and value for ``question``."""
    if isinstance(question, StringQuestion):
        if not isinstance(answer, TextAnswer):
            raise InvalidAnswerError(f"'{question.id}' expects text")
        return
    if isinstance(question, SelectQuestion):
        if not isinstance(answer, ChoiceAnswer):
            raise InvalidAnswerError(f"'{question.id}' expects one of its options")
        if answer.value not in question.options:
            raise InvalidAnswerError(
                f"'{answer.value}' is not an option of '{question.id}' "
                f"(choose from {', '.join(question.options)})"
            )
        return
    if isinstance(question, MultiSelectQuestion):
        if not isinstance(answer, ChoicesAnswer):
            raise InvalidAnswerError(f"'{question.id}' expects a set of choices")
        known = [c.id for c in question.choices]
        unknown = [v for v in answer.values if v not in known]
        if unknown:
            raise InvalidAnswerError(
                f"Unknown choice(s) {', '.join(unknown)} for '{question.id}' "
                f"(choose from {', '.join(known)})"
            )
        return
    raise TypeError(f"Unknown question kind: {type(question).__name__}")


def parse_answers(descriptor: TemplateDescriptor, raw: Mapping[str, object]) -> AnswerMap:
    """Coerce raw ``id -> value`` pairs into typed answers.

    Multi-select values are comma separated ids (or a list). Ids with no
    matching question are kept as text so the resolver can warn about them.
    """
    answers: AnswerMap = {}
    for key, value in raw.items():
        question = descriptor.get_question(key)
        if isinstance(question, MultiSelectQuestion):
            if isinstance(value, (list, tuple)):
                picked = [str(v) for v in value]
            else:
                picked = [v.strip() for v in str(value).split(",") if v.strip()]
            # Keep declared order regardless of how they were listed
            order = [c.id for c in question.choices]
            picked_set = set(picked)
            ordered = tuple(c for c in order if c in picked_set)
            unknown = [p for p in picked if p not in order]
            answers[key] = ChoicesAnswer(ordered + tuple(unknown))
        elif isinstance(question, SelectQuestion):
            answers[key] = ChoiceAnswer(str(value))
        else:
            answers[key] = TextAnswer("" if value is None else str(value))
    return answers


def answer_value(answer: Answer):
    """Plain Python value of an answer."""
    if isinstance(answer, (TextAnswer, ChoiceAnswer)):
        return answer.value
    if isinstance(answer, ChoicesAnswer):
        return list(answer.values)
    raise TypeError(f"Unknown answer kind: {type(answer).__name__}")


def answers_to_context(answers: Mapping[str, Answer]) -> dict:
    """Context mapping handed to the templating engine."""
    return {key: answer_value(answer) for key, answer in answers.items()}


# =============================================================================
# Interactive prompting
# =============================================================================

class RichPrompter:
    """Prompter that asks on the terminal with rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def ask(self, question: Question) -> Answer:
        if isinstance(question, StringQuestion):
            if question.default is not None:
                value = Prompt.ask(
                    f"🎤 {question.prompt}",
                    console=self.console,
                    default=question.default,
                )
            else:
                value = Prompt.ask(f"🎤 {question.prompt}", console=self.console)
            return TextAnswer(value)

        if isinstance(question, SelectQuestion):
            kwargs = {}
            if question.default is not None:
                kwargs["default"] = question.default
            value = Prompt.ask(
                f"🎤 {question.prompt}",
                console=self.console,
                choices=list(question.options),
                **kwargs,
            )
            return ChoiceAnswer(value)

        if isinstance(question, MultiSelectQuestion):
            self.console.print(f"🎤 {question.prompt}")
            picked = tuple(
                choice.id
                for choice in question.choices
                if Confirm.ask(
                    f"   {choice.prompt}",
                    console=self.console,
                    default=choice.default,
                )
            )
            return ChoicesAnswer(picked)

        raise TypeError(f"Unknown question kind: {type(question).__name__}")
