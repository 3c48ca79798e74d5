"""Shared test fixtures for stamp.

Provides:
- make_template: Factory writing a template tree from a dict of files
- config_dir: Temporary config dir (registry + config.json live here)
- registry: Registry backed by a file in config_dir
- cli_runner: Click CliRunner
- invoke: Run the stamp CLI against config_dir
"""

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from stamp.cli import main
from stamp.core.registry import Registry


def write_tree(root: Path, files: dict) -> Path:
    """Write ``{relative path: str | bytes | None}`` under root.

    None creates an empty directory.
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        if content is None:
            path.mkdir(parents=True, exist_ok=True)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
    return root


@pytest.fixture
def make_template(tmp_path):
    """Factory creating a template directory.

    Usage:
        make_template("name", {"README.md.j2": "# {{ name }}"},
                      meta={"questions": [...]})
    """

    def _make(name: str, files: dict = None, meta: dict = None, parent: Path = None) -> Path:
        root = (parent or tmp_path / "templates") / name
        write_tree(root, files or {})
        if meta is not None:
            (root / "stamp.yaml").write_text(yaml.safe_dump(meta, sort_keys=False))
        return root

    return _make


@pytest.fixture
def config_dir(tmp_path):
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def registry(config_dir):
    """Empty registry stored in the temp config dir."""
    return Registry.load(config_dir / "registry.json")


@pytest.fixture
def cli_runner():
    """Click CliRunner for testing CLI commands."""
    return CliRunner()


@pytest.fixture
def invoke(cli_runner, config_dir):
    """Invoke the stamp CLI with an isolated config dir."""

    def _invoke(*args, **kwargs):
        # Wide console so rich does not wrap paths and table cells
        kwargs.setdefault("env", {}).setdefault("COLUMNS", "250")
        return cli_runner.invoke(
            main,
            ["--config-dir", str(config_dir), *[str(a) for a in args]],
            **kwargs,
        )

    return _invoke
