"""Tests for stamp.core.registry module."""

import json
import os

import pytest

from stamp.core.errors import AmbiguousError, NotFoundError, StampIOError
from stamp.core.registry import Discovery, Registry, scan_templates


@pytest.fixture
def templates_root(make_template, tmp_path):
    """Root with two templates, one nested template and a plain directory."""
    root = tmp_path / "templates"
    make_template("axum_server", {"src/main.rs": ""}, meta={
        "meta": {"description": "Axum web server"},
    })
    make_template("cli", {"README.md": ""}, meta={"meta": {"name": "rust-cli"}})
    make_template("inner", {}, meta={}, parent=root / "cli" / "examples")
    (root / "not_a_template" / "src").mkdir(parents=True)
    return root


class TestRegistryPersistence:

    def test_load_missing_file_is_empty(self, tmp_path):
        registry = Registry.load(tmp_path / "registry.json")
        assert registry.roots == []
        assert not (tmp_path / "registry.json").exists()

    def test_add_persists(self, registry, templates_root):
        assert registry.add(templates_root) is True

        data = json.loads(registry.path.read_text())
        assert data == {"version": 1, "roots": [str(templates_root)]}
        assert Registry.load(registry.path).roots == [templates_root]

    def test_add_is_idempotent(self, registry, templates_root):
        registry.add(templates_root)
        assert registry.add(templates_root) is False
        assert registry.add(str(templates_root) + "/") is False
        assert registry.add(templates_root / "axum_server" / "..") is False

        assert Registry.load(registry.path).roots == [templates_root]

    def test_add_normalizes_relative_paths(self, registry, tmp_path, monkeypatch):
        (tmp_path / "rel").mkdir()
        monkeypatch.chdir(tmp_path)
        registry.add("rel")
        assert registry.roots == [tmp_path / "rel"]

    def test_roots_keep_insertion_order(self, registry, tmp_path):
        for name in ["c", "a", "b"]:
            registry.add(tmp_path / name)
        assert [r.name for r in Registry.load(registry.path).roots] == ["c", "a", "b"]

    def test_remove(self, registry, templates_root):
        registry.add(templates_root)
        assert registry.remove(templates_root) == templates_root
        assert Registry.load(registry.path).roots == []

    def test_remove_unknown_root(self, registry, tmp_path):
        with pytest.raises(NotFoundError):
            registry.remove(tmp_path / "never-added")

    def test_save_keeps_backup_and_no_temp_files(self, registry, tmp_path):
        registry.add(tmp_path / "one")
        registry.add(tmp_path / "two")

        backup = registry.path.with_name("registry.json.bak")
        assert json.loads(backup.read_text())["roots"] == [str(tmp_path / "one")]
        assert [p for p in os.listdir(registry.path.parent) if p.endswith(".tmp")] == []

    def test_corrupt_file_recovers_from_backup(self, registry, tmp_path):
        registry.add(tmp_path / "one")
        registry.add(tmp_path / "two")
        registry.path.write_text("{not json")

        recovered = Registry.load(registry.path)

        assert recovered.roots == [tmp_path / "one"]
        assert json.loads(registry.path.read_text())["roots"] == [str(tmp_path / "one")]

    def test_corrupt_file_without_backup(self, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text('{"roots": "nope"}')
        with pytest.raises(StampIOError):
            Registry.load(path)


class TestDiscovery:

    def test_discovers_templates_with_metadata(self, registry, templates_root):
        registry.add(templates_root)

        templates = registry.list()

        assert [t.name for t in templates] == ["axum_server", "rust-cli", "inner"]
        assert templates[0].description == "Axum web server"
        assert templates[0].path == (templates_root / "axum_server").resolve()
        assert all(t.root == templates_root for t in templates)

    def test_broken_template_does_not_abort_listing(self, registry, templates_root):
        (templates_root / "broken").mkdir()
        (templates_root / "broken" / "stamp.yaml").write_text("questions: [oops")
        registry.add(templates_root)

        discovery = registry.discover()

        assert [t.name for t in discovery.templates] == ["axum_server", "rust-cli", "inner"]
        assert len(discovery.errors) == 1
        assert discovery.errors[0].path == templates_root / "broken" / "stamp.yaml"

    def test_missing_root_is_reported(self, registry, templates_root, tmp_path):
        registry.add(tmp_path / "gone")
        registry.add(templates_root)

        discovery = registry.discover()

        assert discovery.missing_roots == [tmp_path / "gone"]
        assert len(discovery.templates) == 3

    def test_ignored_directories(self, make_template, tmp_path):
        root = tmp_path / "templates"
        make_template("real", meta={})
        make_template("hidden", meta={}, parent=root / ".git")
        make_template("deps", meta={}, parent=root / "node_modules")

        found = scan_templates(root, Discovery())

        assert [t.name for t in found.templates] == ["real"]

    def test_overlapping_roots_report_once(self, registry, templates_root):
        registry.add(templates_root)
        registry.add(templates_root / "cli")

        names = [t.name for t in registry.list()]

        assert names == ["axum_server", "rust-cli", "inner"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_cycle(self, registry, templates_root):
        os.symlink(templates_root, templates_root / "axum_server" / "loop")
        registry.add(templates_root)

        names = [t.name for t in registry.list()]

        assert names == ["axum_server", "rust-cli", "inner"]


class TestResolve:

    def test_resolve_by_directory_name(self, registry, templates_root):
        registry.add(templates_root)
        template = registry.resolve("axum_server")
        assert template.path == (templates_root / "axum_server").resolve()

    def test_resolve_by_descriptor_name(self, registry, templates_root):
        registry.add(templates_root)
        assert registry.resolve("rust-cli").path.name == "cli"
        with pytest.raises(NotFoundError):
            registry.resolve("cli")

    def test_not_found(self, registry, templates_root):
        registry.add(templates_root)
        with pytest.raises(NotFoundError, match="nope"):
            registry.resolve("nope")

    def test_ambiguous(self, registry, make_template, tmp_path):
        make_template("web", meta={}, parent=tmp_path / "one")
        make_template("web", meta={}, parent=tmp_path / "two")
        registry.add(tmp_path / "one")
        registry.add(tmp_path / "two")

        with pytest.raises(AmbiguousError) as exc_info:
            registry.resolve("web")

        assert len(exc_info.value.paths) == 2
