"""stamp register / remove / list - Manage template source roots."""

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from stamp.commands.helpers import console, fail, get_app
from stamp.core.errors import NotFoundError, StampError
from stamp.core.registry import Discovery, normalize_root, scan_templates


@click.command("register")
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "--allow-empty",
    "-a",
    is_flag=True,
    help="Register even if no template is found under DIRECTORY",
)
def register_cmd(directory: Path, allow_empty: bool):
    """Register DIRECTORY as a template source root.

    Every directory below it holding a metadata file becomes
    available to `stamp use` by name.

    \b
    Examples:
      stamp register ~/templates
      stamp register ./empty-for-now -a
    """
    app = get_app()
    root = normalize_root(directory)

    try:
        registry = app.open_registry()
        found = scan_templates(
            root,
            Discovery(),
            metadata_file=app.config.metadata_file,
            ignored_dirs=app.config.ignored_dirs,
        )
        if not found.templates and not allow_empty:
            raise NotFoundError(
                f"No templates found under {root} "
                f"(no '{app.config.metadata_file}' files)"
            )
        added = registry.add(root)
    except StampError as e:
        fail(e, "Register anyway with: [cyan]stamp register DIR -a[/]"
             if isinstance(e, NotFoundError) else None)

    if added:
        console.print(f"[green]✓[/] Registered [cyan]{escape(str(root))}[/]")
    else:
        console.print(f"[dim]Already registered:[/] {escape(str(root))}")
    console.print(f"  {len(found.templates)} template(s) found")
    for template in found.templates:
        console.print(f"  • [cyan]{escape(template.name)}[/]")
    if found.errors:
        console.print(f"  [yellow]{len(found.errors)} broken template(s) skipped[/]")


@click.command("remove")
@click.argument("root")
def remove_cmd(root: str):
    """Unregister the template source root ROOT."""
    app = get_app()
    try:
        removed = app.open_registry().remove(root)
    except StampError as e:
        fail(e, "Registered roots are listed by: [cyan]stamp list[/]")

    console.print(f"[green]✓[/] Removed [cyan]{escape(str(removed))}[/]")


@click.command("list")
def list_cmd():
    """List templates under the registered source roots."""
    app = get_app()
    try:
        registry = app.open_registry()
        discovery = registry.discover()
    except StampError as e:
        fail(e)

    if not registry.roots:
        console.print("[yellow]No template roots registered[/]")
        console.print("Add one with: [cyan]stamp register DIR[/]")
        return

    if discovery.templates:
        table = Table(title="Templates")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        table.add_column("Path", style="dim")
        for template in discovery.templates:
            table.add_row(
                escape(template.name),
                escape(template.description or ""),
                escape(str(template.path)),
            )
        console.print(table)
    else:
        console.print("[dim]No templates found[/]")

    duplicated = sorted(
        name for name, found in discovery.by_name().items() if len(found) > 1
    )
    for name in duplicated:
        console.print(f"[yellow]⚠[/] '{escape(name)}' is ambiguous; `stamp use` will refuse it")

    for error in discovery.errors:
        console.print(f"[yellow]⚠ Broken template skipped:[/] {escape(str(error))}")

    for root in discovery.missing_roots:
        console.print(f"[yellow]⚠ Missing source root:[/] {escape(str(root))}")

    console.print(
        f"\n[dim]{len(discovery.templates)} template(s) in "
        f"{len(registry.roots)} source root(s)[/]"
    )
