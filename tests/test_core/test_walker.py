"""Tests for stamp.core.walker module."""

import os

import pytest

from stamp.core.answers import ChoicesAnswer, TextAnswer
from stamp.core.content import ContentRenderer
from stamp.core.errors import (
    AlreadyExistsError,
    InvalidPathSegmentError,
    MissingAnswerError,
    NestedDestinationError,
    NotFoundError,
    UnknownVariableError,
)
from stamp.core.walker import render_tree

ANSWERS = {
    "crate_name": TextAnswer("foo"),
    "features": ChoicesAnswer(("ws",)),
}


def tree_snapshot(root):
    """{relative path: bytes | None} for everything under root."""
    snapshot = {}
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)
        for d in dirnames:
            snapshot[os.path.normpath(os.path.join(rel_dir, d))] = None
        for f in filenames:
            with open(os.path.join(dirpath, f), "rb") as fh:
                snapshot[os.path.normpath(os.path.join(rel_dir, f))] = fh.read()
    return snapshot


@pytest.fixture
def axum_template(make_template):
    return make_template(
        "axum_server",
        {
            "Cargo.toml.j2": '[package]\nname = "{{ crate_name }}"\n',
            "src/main.rs": "fn main() {}\n",
            "src/{{crate_name}}.rs": "// {{ crate_name }} stays raw\n",
            "src/external/ws/mod.rs.j2": (
                "{% if 'ws' in features %}pub mod ws;{% endif %}\n"
            ),
            "assets/logo.bin": b"\x89PNG\x00\xff",
            "empty": None,
        },
        meta={"questions": [
            {"id": "crate_name", "default": "example"},
            {"type": "multiselect", "id": "features", "choices": ["ws"]},
        ]},
    )


class TestRenderTree:

    def test_renders_tree(self, axum_template, tmp_path):
        dest = tmp_path / "out"
        report = render_tree(axum_template, dest, ANSWERS)

        assert (dest / "Cargo.toml").read_text() == '[package]\nname = "foo"\n'
        assert (dest / "src/main.rs").read_text() == "fn main() {}\n"
        assert (dest / "src/foo.rs").read_text() == "// {{ crate_name }} stays raw\n"
        assert (dest / "src/external/ws/mod.rs").read_text() == "pub mod ws;\n"
        assert (dest / "assets/logo.bin").read_bytes() == b"\x89PNG\x00\xff"
        assert (dest / "empty").is_dir()
        assert not (dest / "stamp.yaml").exists()

        assert len(report.files) == 5
        assert sorted(p.name for p in report.rendered) == ["Cargo.toml", "mod.rs"]

    def test_file_named_after_answer(self, make_template, tmp_path):
        template = make_template("t", {"{{crate_name}}.rs": "fn x() {}"})
        render_tree(template, tmp_path / "out", {"crate_name": TextAnswer("foo")})
        assert (tmp_path / "out" / "foo.rs").exists()

    def test_pre_order_sorted_entries(self, axum_template, tmp_path):
        seen = []
        render_tree(axum_template, tmp_path / "out", ANSWERS, on_entry=seen.append)

        rel = [p.relative_to(tmp_path / "out").as_posix() for p in seen]
        assert rel == [
            "Cargo.toml",
            "assets",
            "assets/logo.bin",
            "empty",
            "src",
            "src/external",
            "src/external/ws",
            "src/external/ws/mod.rs",
            "src/main.rs",
            # "{" sorts after letters
            "src/foo.rs",
        ]

    def test_renders_are_reproducible(self, axum_template, tmp_path):
        render_tree(axum_template, tmp_path / "one", ANSWERS)
        render_tree(axum_template, tmp_path / "two", ANSWERS)
        assert tree_snapshot(tmp_path / "one") == tree_snapshot(tmp_path / "two")

    def test_nested_metadata_file_is_copied(self, make_template, tmp_path):
        template = make_template("t", {"examples/inner/stamp.yaml": "questions: []\n"}, meta={})
        render_tree(template, tmp_path / "out", {})
        assert (tmp_path / "out/examples/inner/stamp.yaml").exists()

    def test_existing_destination_root_is_allowed(self, make_template, tmp_path):
        template = make_template("t", {"a.txt": "a"})
        dest = tmp_path / "out"
        dest.mkdir()
        (dest / "unrelated.txt").write_text("keep")

        render_tree(template, dest, {})

        assert (dest / "a.txt").read_text() == "a"
        assert (dest / "unrelated.txt").read_text() == "keep"

    def test_missing_source(self, tmp_path):
        with pytest.raises(NotFoundError):
            render_tree(tmp_path / "nope", tmp_path / "out", {})

    def test_custom_marker_and_metadata_name(self, make_template, tmp_path):
        template = make_template("t", {
            "template.yml": "ignored",
            "main.rs.tera": "{{ crate_name }}",
        })
        render_tree(
            template, tmp_path / "out", ANSWERS,
            renderer=ContentRenderer(marker=".tera"),
            metadata_file="template.yml",
        )
        assert sorted(os.listdir(tmp_path / "out")) == ["main.rs"]
        assert (tmp_path / "out/main.rs").read_text() == "foo"


class TestRenderFailures:

    def test_already_exists_keeps_earlier_output(self, make_template, tmp_path):
        template = make_template("t", {
            "a.txt": "first",
            "b.txt": "second",
            "c.txt": "third",
        })
        dest = tmp_path / "out"
        dest.mkdir()
        (dest / "b.txt").write_text("original")

        with pytest.raises(AlreadyExistsError) as exc_info:
            render_tree(template, dest, {})

        assert exc_info.value.path == dest / "b.txt"
        assert (dest / "a.txt").read_text() == "first"
        assert (dest / "b.txt").read_text() == "original"
        assert not (dest / "c.txt").exists()

    def test_existing_directory_is_an_error(self, make_template, tmp_path):
        template = make_template("t", {"src/a.txt": "a"})
        (tmp_path / "out/src").mkdir(parents=True)
        with pytest.raises(AlreadyExistsError):
            render_tree(template, tmp_path / "out", {})

    def test_two_sources_same_output(self, make_template, tmp_path):
        template = make_template("t", {"a.txt": "plain", "a.txt.j2": "rendered"})
        with pytest.raises(AlreadyExistsError):
            render_tree(template, tmp_path / "out", {})
        assert (tmp_path / "out/a.txt").read_text() == "plain"

    def test_unknown_variable_in_name(self, make_template, tmp_path):
        template = make_template("t", {"{{nope}}.txt": ""})
        with pytest.raises(UnknownVariableError):
            render_tree(template, tmp_path / "out", ANSWERS)

    def test_missing_answer_in_content(self, make_template, tmp_path):
        template = make_template("t", {"a.txt.j2": "{{ author }}"})
        with pytest.raises(MissingAnswerError, match="author"):
            render_tree(template, tmp_path / "out", ANSWERS)

    def test_answer_containing_marker_does_not_mark_file(self, make_template, tmp_path):
        template = make_template("t", {
            "{{crate_name}}.txt": "raw {{ crate_name }}",
            "{{crate_name}}.bin": b"\xff\xfe\x00",
        })
        answers = {"crate_name": TextAnswer("a.j2")}

        report = render_tree(template, tmp_path / "out", answers)

        assert (tmp_path / "out/a.j2.txt").read_text() == "raw {{ crate_name }}"
        assert (tmp_path / "out/a.j2.bin").read_bytes() == b"\xff\xfe\x00"
        assert report.rendered == []

    def test_marker_stripped_before_interpolation(self, make_template, tmp_path):
        template = make_template("t", {"{{crate_name}}.rs.j2": "// {{ crate_name }}"})
        render_tree(template, tmp_path / "out", {"crate_name": TextAnswer("x.j2")})
        assert (tmp_path / "out/x.j2.rs").read_text() == "// x.j2"

    def test_marked_name_resolving_to_dot(self, make_template, tmp_path):
        template = make_template("t", {"{{n}}.j2": "x"})
        with pytest.raises(InvalidPathSegmentError):
            render_tree(template, tmp_path / "out", {"n": TextAnswer(".")})

    @pytest.mark.parametrize("dest", ["out", "."])
    def test_destination_inside_template(self, make_template, dest):
        template = make_template("t", {"a.txt": "a"})
        with pytest.raises(NestedDestinationError):
            render_tree(template, template / dest, {})
        assert not (template / "out").exists()


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
class TestSymlinks:

    def test_directory_cycle_is_skipped(self, make_template, tmp_path):
        template = make_template("t", {"sub/file.txt": "x"})
        os.symlink(template, template / "sub" / "loop")

        report = render_tree(template, tmp_path / "out", {})

        assert (tmp_path / "out/sub/file.txt").exists()
        assert not (tmp_path / "out/sub/loop").exists()
        assert report.skipped == [template / "sub" / "loop"]

    def test_dangling_link_is_skipped(self, make_template, tmp_path):
        template = make_template("t", {"a.txt": "a"})
        os.symlink(tmp_path / "missing", template / "dangling")

        report = render_tree(template, tmp_path / "out", {})

        assert not os.path.lexists(tmp_path / "out/dangling")
        assert report.skipped == [template / "dangling"]
