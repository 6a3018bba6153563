"""
ryoshu.storage.project
~~~~~~~~~~~~~~~~~~~~~~
Project layout resolution — maps a project name to its paths:

  ~/.ryoshu/<project>/ryoshu.db   — key-value store (issuers + history)
  ~/.ryoshu/<project>/pdfs/       — exported receipt documents

Separate projects keep separate issuer lists and histories, e.g. one per
business.

Usage::

    from ryoshu.storage.project import resolve_project, layout_from_db_path

    layout = resolve_project()                 # "default" or RYOSHU_PROJECT env var
    layout = resolve_project("shop-2025")      # explicit project name
    layout = layout_from_db_path(Path("..."))  # reverse: infer layout from db path
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

RYOSHU_HOME      = Path.home() / ".ryoshu"
DEFAULT_PROJECT  = "default"
DB_FILENAME      = "ryoshu.db"

# Project names: lowercase alphanumeric + hyphens + underscores, 1–64 chars
_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


@dataclass(frozen=True)
class ProjectLayout:
    """All paths belonging to a single project."""
    name:     str
    root:     Path   # ~/.ryoshu/<name>/
    db_path:  Path   # root/ryoshu.db
    pdfs_dir: Path   # root/pdfs/

    def create_dirs(self) -> None:
        """Ensure all project directories exist."""
        self.root.mkdir(parents=True, exist_ok=True)
        self.pdfs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_PROJECT

    @property
    def exists(self) -> bool:
        """True if the db file has been created."""
        return self.db_path.exists()


def resolve_project(
    project: str | None = None,
    *,
    env_var: bool = True,
) -> ProjectLayout:
    """
    Resolve a project name to its layout.

    Priority order:
      1. Explicit ``project`` argument
      2. ``RYOSHU_PROJECT`` environment variable (when env_var=True)
      3. ``"default"``
    """
    name = (
        project
        or (os.environ.get("RYOSHU_PROJECT") if env_var else None)
        or DEFAULT_PROJECT
    )
    return _make_layout(name)


def layout_from_db_path(db_path: Path) -> ProjectLayout:
    """
    Infer a ProjectLayout from an explicit db path.

    Exports go to a ``pdfs/`` directory next to the database; the project
    name is the containing directory for the standard file name, otherwise
    the db file's stem.
    """
    db_path = Path(db_path).resolve()
    parent  = db_path.parent
    name    = parent.name if db_path.name == DB_FILENAME else db_path.stem

    return ProjectLayout(
        name=name,
        root=parent,
        db_path=db_path,
        pdfs_dir=parent / "pdfs",
    )


def validate_project_name(name: str) -> str | None:
    """
    Validate a proposed project name.
    Returns an error message string on failure, None on success.
    """
    if not name or not name.strip():
        return "Name cannot be empty."
    if not _NAME_RE.match(name):
        return (
            "Use only lowercase letters, digits, hyphens and underscores. "
            "Must start with a letter or digit (max 64 characters)."
        )
    return None


def _make_layout(name: str) -> ProjectLayout:
    root = RYOSHU_HOME / name
    return ProjectLayout(
        name=name,
        root=root,
        db_path=root / DB_FILENAME,
        pdfs_dir=root / "pdfs",
    )


__all__ = [
    "RYOSHU_HOME",
    "DEFAULT_PROJECT",
    "ProjectLayout",
    "resolve_project",
    "layout_from_db_path",
    "validate_project_name",
]
