"""stamp use / stamp from - Render a template into a destination."""

import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import click
import yaml
from rich.markup import escape
from tqdm import tqdm

from stamp.commands.helpers import AppContext, console, fail, get_app
from stamp.core.answers import RichPrompter, parse_answers, resolve_answers
from stamp.core.content import ContentRenderer, JinjaEngine
from stamp.core.descriptor import TemplateDescriptor, load_descriptor
from stamp.core.errors import (
    InvalidAnswerError,
    NestedDestinationError,
    NotFoundError,
    StampError,
)
from stamp.core.walker import render_tree


def _parse_set(ctx, param, values: Tuple[str, ...]) -> Dict[str, str]:
    """Callback turning ``--set id=value`` options into a dict."""
    parsed = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected ID=VALUE, got '{item}'")
        parsed[key.strip()] = value
    return parsed


def render_options(func):
    """Options shared by `use` and `from`."""
    func = click.option(
        "--defaults",
        "use_defaults",
        is_flag=True,
        help="Accept declared defaults instead of prompting",
    )(func)
    func = click.option(
        "--no-input",
        is_flag=True,
        help="Never prompt; fail on unanswered questions",
    )(func)
    func = click.option(
        "--answers",
        "answers_file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="YAML or JSON file mapping question ids to answers",
    )(func)
    func = click.option(
        "--set",
        "-s",
        "sets",
        multiple=True,
        callback=_parse_set,
        metavar="ID=VALUE",
        help="Answer a question up front (repeatable)",
    )(func)
    return func


@click.command("use")
@click.argument("name")
@click.argument("destination", type=click.Path(path_type=Path))
@render_options
def use_cmd(
    name: str,
    destination: Path,
    sets: Dict[str, str],
    answers_file: Optional[Path],
    no_input: bool,
    use_defaults: bool,
):
    """Render a registered template to DESTINATION.

    NAME is the template name shown by `stamp list`.

    \b
    Examples:
      stamp use axum-server ./my-server
      stamp use axum-server ./my-server -s crate_name=foo --no-input
    """
    app = get_app()
    try:
        template = app.open_registry().resolve(name)
    except StampError as e:
        fail(e, "List available: [cyan]stamp list[/]")

    _render(app, template.path, destination, template.descriptor,
            sets, answers_file, no_input, use_defaults)


@click.command("from")
@click.argument(
    "source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.argument("destination", type=click.Path(path_type=Path))
@render_options
def from_cmd(
    source: Path,
    destination: Path,
    sets: Dict[str, str],
    answers_file: Optional[Path],
    no_input: bool,
    use_defaults: bool,
):
    """Render the template directory SOURCE to DESTINATION.

    \b
    Examples:
      stamp from ./templates/axum_server ./my-server
      stamp from ./templates/axum_server ./my-server --answers answers.yaml
    """
    app = get_app()
    try:
        descriptor = load_descriptor(source, app.config.metadata_file)
    except StampError as e:
        fail(e)

    _render(app, source, destination, descriptor,
            sets, answers_file, no_input, use_defaults)


def _render(
    app: AppContext,
    source: Path,
    destination: Path,
    descriptor: TemplateDescriptor,
    sets: Dict[str, str],
    answers_file: Optional[Path],
    no_input: bool,
    use_defaults: bool,
) -> None:
    """Resolve answers and render ``source`` into ``destination``."""
    title = descriptor.name or source.name
    console.print(f"[bold blue]stamp[/] - Rendering [cyan]{escape(title)}[/]")
    if descriptor.description:
        console.print(f"  [dim]{escape(descriptor.description)}[/]")

    interactive = not no_input and sys.stdin.isatty()
    try:
        raw = _load_answers_file(answers_file) if answers_file else {}
        raw.update(sets)
        answers = resolve_answers(
            descriptor,
            parse_answers(descriptor, raw),
            prompter=RichPrompter(console) if interactive else None,
            use_defaults=use_defaults,
        )
    except StampError as e:
        hint = None
        if not interactive:
            hint = "Supply answers with [cyan]--set ID=VALUE[/] or accept defaults with [cyan]--defaults[/]"
        fail(e, hint)

    renderer = ContentRenderer(JinjaEngine(), marker=app.config.template_marker)
    try:
        with tqdm(desc="Rendering", unit="entry", leave=False) as pbar:
            report = render_tree(
                source,
                destination,
                answers,
                renderer,
                metadata_file=app.config.metadata_file,
                on_entry=lambda _path: pbar.update(1),
            )
    except StampError as e:
        hint = None
        if not isinstance(e, (NotFoundError, NestedDestinationError)):
            hint = f"[yellow]Partial output may remain in[/] {escape(str(destination))}"
        fail(e, hint)

    console.print(f"\n[green]✓[/] Template rendered to [cyan]{escape(str(destination))}[/]")
    console.print(
        f"  {len(report.files)} files ({len(report.rendered)} rendered), "
        f"{len(report.directories)} directories"
    )
    if report.skipped:
        console.print(f"  [yellow]{len(report.skipped)} entries skipped[/]")


def _load_answers_file(path: Path) -> Dict[str, object]:
    """Read an ``id -> value`` mapping from YAML or JSON."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise InvalidAnswerError(f"Cannot read answers file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidAnswerError(f"Answers file {path} must hold a mapping")
    return {str(k): v for k, v in data.items()}
