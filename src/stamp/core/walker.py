"""Render a template tree into a destination directory.

The walk is pre-order and sorted, one entry at a time. Names go through
path interpolation, marked files through the content renderer. Nothing is
ever overwritten: an existing destination entry aborts the walk. Output
written before a failure is left in place.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, List, Mapping, Optional, Set

from stamp.core.answers import Answer
from stamp.core.content import ContentRenderer
from stamp.core.descriptor import DEFAULT_METADATA_FILE
from stamp.core.errors import (
    AlreadyExistsError,
    NestedDestinationError,
    NotFoundError,
    StampIOError,
)
from stamp.core.paths import interpolate_path

logger = logging.getLogger(__name__)


@dataclass
class RenderReport:
    """What a render created."""
    destination: Path
    directories: List[Path] = field(default_factory=list)
    files: List[Path] = field(default_factory=list)
    rendered: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.directories) + len(self.files)


def render_tree(
    source_root: Path,
    dest_root: Path,
    answers: Mapping[str, Answer],
    renderer: Optional[ContentRenderer] = None,
    metadata_file: str = DEFAULT_METADATA_FILE,
    on_entry: Optional[Callable[[Path], None]] = None,
) -> RenderReport:
    """Reproduce ``source_root`` under ``dest_root``.

    Args:
        source_root: Template root directory
        dest_root: Destination directory (created if missing)
        answers: Resolved answers for every question of the template
        renderer: Content renderer (defaults to jinja with the ``.j2`` marker)
        metadata_file: Name of the metadata file excluded at the root
        on_entry: Called with each destination path once it is written

    Returns:
        RenderReport of created directories and files

    Raises:
        AlreadyExistsError: A destination entry already exists
        NestedDestinationError: dest_root lies inside source_root
        StampIOError: Reading the template or writing output failed
        StampError: Interpolation or rendering failed
    """
    source_root = Path(source_root)
    dest_root = Path(dest_root)
    renderer = renderer or ContentRenderer()

    if not source_root.is_dir():
        raise NotFoundError(f"Template directory not found: {source_root}")

    real_source = os.path.realpath(source_root)
    real_dest = os.path.realpath(dest_root)
    if os.path.commonpath([real_source, real_dest]) == real_source:
        raise NestedDestinationError(source_root, dest_root)

    try:
        dest_root.mkdir(parents=True, exist_ok=True)
    except FileExistsError as e:
        raise AlreadyExistsError(dest_root) from e
    except OSError as e:
        raise StampIOError(dest_root, e) from e

    report = RenderReport(destination=dest_root)
    visited: Set[str] = {real_source}
    _walk(
        source_root, PurePosixPath(), dest_root, answers, renderer,
        metadata_file, on_entry, visited, report,
    )
    return report


def _walk(
    source_root: Path,
    rel_dir: PurePosixPath,
    dest_root: Path,
    answers: Mapping[str, Answer],
    renderer: ContentRenderer,
    metadata_file: str,
    on_entry: Optional[Callable[[Path], None]],
    visited: Set[str],
    report: RenderReport,
) -> None:
    directory = source_root / rel_dir
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise StampIOError(directory, e) from e

    for entry in entries:
        rel_path = rel_dir / entry.name
        if rel_dir == PurePosixPath() and entry.name == metadata_file:
            continue

        if entry.is_dir():
            real = os.path.realpath(entry.path)
            if real in visited:
                logger.warning("Skipping directory link cycle at %s", entry.path)
                report.skipped.append(Path(entry.path))
                continue
            visited.add(real)

            target = dest_root / interpolate_path(rel_path, answers)
            _make_dir(target)
            report.directories.append(target)
            if on_entry:
                on_entry(target)
            _walk(
                source_root, rel_path, dest_root, answers, renderer,
                metadata_file, on_entry, visited, report,
            )
            visited.discard(real)
        elif entry.is_file():
            # Marking is a property of the template file, never of an answer
            marked = renderer.is_marked(entry.name)
            target_rel = interpolate_path(rel_dir / renderer.output_name(entry.name), answers)
            data = _read(Path(entry.path))
            output, _ = renderer.render(data, entry.name, answers)
            target = dest_root / target_rel
            _write_new(target, output)
            report.files.append(target)
            if marked:
                report.rendered.append(target)
            logger.debug("Wrote %s", target)
            if on_entry:
                on_entry(target)
        else:
            # Dangling links, sockets, fifos
            logger.warning("Skipping unsupported entry %s", entry.path)
            report.skipped.append(Path(entry.path))


def _make_dir(target: Path) -> None:
    try:
        target.mkdir(parents=True)
    except FileExistsError as e:
        raise AlreadyExistsError(target) from e
    except OSError as e:
        raise StampIOError(target, e) from e


def _read(path: Path) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise StampIOError(path, e) from e


def _write_new(target: Path, data: bytes) -> None:
    try:
        with open(target, "xb") as f:
            f.write(data)
    except FileExistsError as e:
        raise AlreadyExistsError(target) from e
    except OSError as e:
        raise StampIOError(target, e) from e
