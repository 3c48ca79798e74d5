"""Main CLI entry point for stamp."""

from pathlib import Path

import click

from stamp import __version__
from stamp.commands.helpers import AppContext, setup_logging
from stamp.commands.render import use_cmd, from_cmd
from stamp.commands.registry import register_cmd, remove_cmd, list_cmd


@click.group()
@click.version_option(version=__version__, prog_name="stamp")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="STAMP_CONFIG_DIR",
    help="Directory holding config.json and the template registry",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, config_dir: Path, verbose: bool):
    """stamp - Scaffold project trees from reusable templates.

    \b
    Rendering:
      stamp use <name> <dest>       Render a registered template
      stamp from <dir> <dest>       Render a template directory

    \b
    Registry:
      stamp register <dir> [-a]     Register a template source root
      stamp remove <dir>            Unregister a source root
      stamp list                    List discovered templates
    """
    setup_logging(verbose)
    ctx.obj = AppContext.from_dir(config_dir)


# Rendering
main.add_command(use_cmd, name="use")
main.add_command(from_cmd, name="from")

# Registry
main.add_command(register_cmd, name="register")
main.add_command(remove_cmd, name="remove")
main.add_command(list_cmd, name="list")


if __name__ == "__main__":
    main()
