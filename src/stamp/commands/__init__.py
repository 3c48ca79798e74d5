"""stamp commands.

- render.py: `use` and `from`, rendering a template into a destination
- registry.py: `register`, `remove` and `list` for template source roots
- helpers.py: Application context, logging and error reporting
"""

from stamp.commands.render import use_cmd, from_cmd
from stamp.commands.registry import register_cmd, remove_cmd, list_cmd

__all__ = ["use_cmd", "from_cmd", "register_cmd", "remove_cmd", "list_cmd"]
