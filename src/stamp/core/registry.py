"""Registry of template source roots.

The registry is an ordered set of absolute directories stored as JSON::

    {"version": 1, "roots": ["/home/me/templates", "/opt/team-templates"]}

Templates are not stored. They are discovered on demand by scanning each
root for directories that hold a metadata file. Every mutation rewrites
the file atomically (temp file + fsync + os.replace) and keeps the
previous copy as ``registry.json.bak``. Concurrent processes are not
coordinated.
"""

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from stamp.core.descriptor import (
    DEFAULT_METADATA_FILE,
    TemplateDescriptor,
    load_descriptor,
)
from stamp.core.errors import (
    AmbiguousError,
    InvalidDescriptorError,
    NotFoundError,
    StampIOError,
)

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1
DEFAULT_IGNORED_DIRS = frozenset({".git", ".hg", ".svn", "__pycache__", "node_modules"})


def normalize_root(path) -> Path:
    """Absolute, user-expanded, normalized form of a source root."""
    return Path(os.path.abspath(os.path.expanduser(str(path))))


@dataclass
class DiscoveredTemplate:
    """A template found under a registered root."""
    name: str
    path: Path
    descriptor: TemplateDescriptor
    root: Optional[Path] = None

    @property
    def description(self) -> Optional[str]:
        return self.descriptor.description


@dataclass
class Discovery:
    """Result of scanning the registered roots."""
    templates: List[DiscoveredTemplate] = field(default_factory=list)
    errors: List[InvalidDescriptorError] = field(default_factory=list)
    missing_roots: List[Path] = field(default_factory=list)

    def by_name(self) -> Dict[str, List[DiscoveredTemplate]]:
        grouped: Dict[str, List[DiscoveredTemplate]] = {}
        for template in self.templates:
            grouped.setdefault(template.name, []).append(template)
        return grouped


class Registry:
    """Handle on the persisted set of template source roots.

    Provides:
    - Load/save of the registry file with atomic replace
    - add/remove of source roots
    - Discovery and name resolution of templates under the roots
    """

    def __init__(
        self,
        path: Path,
        roots: Optional[Iterable[Path]] = None,
        metadata_file: str = DEFAULT_METADATA_FILE,
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
    ):
        """Initialize a registry handle.

        Args:
            path: Location of the registry file
            roots: Already-loaded source roots
            metadata_file: Name of a template's metadata file
            ignored_dirs: Directory names never scanned during discovery
        """
        self.path = Path(path)
        self.metadata_file = metadata_file
        self.ignored_dirs = frozenset(ignored_dirs)
        self._roots: List[Path] = []
        for root in roots or []:
            root = normalize_root(root)
            if root not in self._roots:
                self._roots.append(root)

    @classmethod
    def load(cls, path: Path, **kwargs) -> "Registry":
        """Load the registry file, recovering from the backup if corrupt.

        A registry file that does not exist yet is an empty registry.

        Raises:
            StampIOError: If neither the file nor its backup can be read
        """
        path = Path(path)
        if not path.exists():
            return cls(path, **kwargs)

        try:
            return cls(path, roots=cls._read_roots(path), **kwargs)
        except (json.JSONDecodeError, TypeError, KeyError, ValueError) as e:
            logger.warning("Registry file corrupted: %s. Trying backup.", e)
            backup = cls._backup_path(path)
            if backup.exists():
                try:
                    registry = cls(path, roots=cls._read_roots(backup), **kwargs)
                    logger.info("Recovered registry from backup file")
                    registry.save(backup=False)
                    return registry
                except (json.JSONDecodeError, TypeError, KeyError, ValueError):
                    logger.warning("Backup file also corrupted")
            raise StampIOError(path, OSError(f"registry file is corrupted ({e})")) from e
        except OSError as e:
            raise StampIOError(path, e) from e

    @staticmethod
    def _read_roots(path: Path) -> List[str]:
        data = json.loads(path.read_text(encoding="utf-8"))
        roots = data["roots"]
        if not isinstance(roots, list) or not all(isinstance(r, str) for r in roots):
            raise ValueError("'roots' must be a list of paths")
        return roots

    @staticmethod
    def _backup_path(path: Path) -> Path:
        return path.with_name(path.name + ".bak")

    @property
    def roots(self) -> List[Path]:
        return list(self._roots)

    def to_dict(self) -> dict:
        return {
            "version": REGISTRY_VERSION,
            "roots": [str(root) for root in self._roots],
        }

    def save(self, backup: bool = True) -> None:
        """Write the registry file atomically.

        Writes to a temp file with fsync, then replaces the target with
        os.replace(). The previous file is kept as a rolling backup unless
        ``backup`` is False.
        """
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if backup and self.path.exists():
                try:
                    shutil.copy2(str(self.path), str(self._backup_path(self.path)))
                except OSError:
                    logger.warning("Could not create registry backup")
        except OSError as e:
            raise StampIOError(directory, e) from e

        fd = None
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(directory),
                suffix=".tmp",
                prefix="registry_",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fd = None  # os.fdopen takes ownership of fd
                json.dump(self.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, str(self.path))
            tmp_path = None
        except OSError as e:
            raise StampIOError(self.path, e) from e
        finally:
            if fd is not None:
                os.close(fd)
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    # =========================================================================
    # Mutation
    # =========================================================================

    def add(self, source_root) -> bool:
        """Register a source root.

        Re-adding a registered root changes nothing.

        Returns:
            True if the root was added, False if it was already registered
        """
        root = normalize_root(source_root)
        if root in self._roots:
            logger.debug("Source root already registered: %s", root)
            return False
        self._roots.append(root)
        self.save()
        return True

    def remove(self, source_root) -> Path:
        """Unregister a source root.

        Raises:
            NotFoundError: If the root is not registered
        """
        root = normalize_root(source_root)
        if root not in self._roots:
            raise NotFoundError(f"Source root is not registered: {root}")
        self._roots.remove(root)
        self.save()
        return root

    # =========================================================================
    # Discovery
    # =========================================================================

    def discover(self) -> Discovery:
        """Scan every registered root for templates."""
        discovery = Discovery()
        visited: Set[str] = set()
        for root in self._roots:
            if not root.is_dir():
                logger.debug("Registered source root is missing: %s", root)
                discovery.missing_roots.append(root)
                continue
            scan_templates(
                root, discovery, visited,
                metadata_file=self.metadata_file,
                ignored_dirs=self.ignored_dirs,
            )
        return discovery

    def list(self) -> List[DiscoveredTemplate]:
        """Discovered templates, skipping broken ones."""
        return self.discover().templates

    def resolve(self, name: str) -> DiscoveredTemplate:
        """Find the template called ``name``.

        Raises:
            NotFoundError: If no template has that name
            AmbiguousError: If templates at different paths share the name
        """
        matches = self.discover().by_name().get(name, [])
        if not matches:
            raise NotFoundError(f"Template '{name}' not found in registry")
        paths = []
        for template in matches:
            if template.path not in paths:
                paths.append(template.path)
        if len(paths) > 1:
            raise AmbiguousError(name, paths)
        return matches[0]


def scan_templates(
    root: Path,
    discovery: Discovery,
    visited: Optional[Set[str]] = None,
    metadata_file: str = DEFAULT_METADATA_FILE,
    ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
) -> Discovery:
    """Pre-order scan of ``root`` for directories holding a metadata file.

    A template's children are scanned too, so templates may nest. Real
    paths already in ``visited`` are skipped, which breaks symlink cycles
    and avoids reporting a template twice when roots overlap.
    """
    visited = set() if visited is None else visited
    ignored = frozenset(ignored_dirs)
    stack = [Path(root)]
    while stack:
        directory = stack.pop()
        real = os.path.realpath(directory)
        if real in visited:
            logger.debug("Already scanned %s", directory)
            continue
        visited.add(real)

        if (directory / metadata_file).is_file():
            try:
                descriptor = load_descriptor(directory, metadata_file)
            except InvalidDescriptorError as e:
                logger.debug("Skipping broken template: %s", e)
                discovery.errors.append(e)
            else:
                discovery.templates.append(DiscoveredTemplate(
                    name=descriptor.name or directory.name,
                    path=Path(real),
                    descriptor=descriptor,
                    root=Path(root),
                ))

        try:
            with os.scandir(directory) as it:
                children = sorted(
                    (Path(e.path) for e in it
                     if e.is_dir() and e.name not in ignored),
                    reverse=True,
                )
        except OSError as e:
            logger.warning("Cannot scan %s: %s", directory, e)
            continue
        # Reversed so the stack pops them in sorted order
        stack.extend(children)

    return discovery
