"""
ryoshu.ui.server
~~~~~~~~~~~~~~~~
Starts the ryoshu web API under uvicorn against a chosen project database.

The API resolves its database per request from ``Config`` (``RYOSHU_DB_PATH``,
then ``RYOSHU_PROJECT``). uvicorn imports the app by name, and with
``--reload`` in a child process, so the selection is handed over through
the environment before the server starts.

Called by the CLI via ``ryoshu --ui`` or directly::

    python -m ryoshu.ui.server --project shop-2025
    python -m ryoshu.ui.server --db /tmp/receipts.db --port 8080 --no-browser
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
import webbrowser
from pathlib import Path
from typing import Optional

from ryoshu.config import Config
from ryoshu.storage.project import layout_from_db_path, resolve_project, validate_project_name

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

APP_IMPORT_PATH = "ryoshu.ui.api:app"
BROWSER_DELAY   = 1.2


def select_storage(project: Optional[str] = None, db_path: Optional[Path] = None) -> Path:
    """
    Point the API at ``db_path`` or at the project's database and return it.

    An explicit database wins over a project name; with neither, whatever
    the environment already selects is served. Raises ``ValueError`` for
    a project name that would escape ``~/.ryoshu/``.
    """
    if db_path is not None:
        layout = layout_from_db_path(Path(db_path))
        os.environ["RYOSHU_DB_PATH"] = str(layout.db_path)
        return layout.db_path

    if project:
        error = validate_project_name(project)
        if error:
            raise ValueError(f"Invalid project name {project!r}: {error}")
        os.environ["RYOSHU_PROJECT"] = project
        os.environ.pop("RYOSHU_DB_PATH", None)
        return resolve_project(project).db_path

    settings = Config()
    return settings.db_path or resolve_project(settings.project).db_path


def launch(
    host: str = "127.0.0.1",
    port: int = 8000,
    *,
    project: Optional[str] = None,
    db_path: Optional[Path] = None,
    reload: bool = False,
    open_browser: bool = True,
    log_level: str = "warning",
) -> None:
    """
    Serve the API until interrupted.

    Args:
        project:      Project whose ``~/.ryoshu/<project>/ryoshu.db`` is served.
        db_path:      Explicit database file; overrides ``project``.
        open_browser: Open the interactive API docs once the server is up.
    """
    try:
        import uvicorn
    except ImportError:
        print(
            "[error] uvicorn is not installed.\n"
            "        Install the UI extras:  pip install ryoshu[ui]",
            file=sys.stderr,
        )
        sys.exit(1)

    database = select_storage(project, db_path)
    url = f"http://{host}:{port}"
    logger.info("Serving %s on %s", database, url)

    print(f"\n  ryoshu API  →  {url}/docs")
    print(f"  Database    →  {database}")
    print("  Press Ctrl+C to stop.\n")

    if open_browser:
        timer = threading.Timer(BROWSER_DELAY, webbrowser.open, args=(f"{url}/docs",))
        timer.daemon = True
        timer.start()

    uvicorn.run(APP_IMPORT_PATH, host=host, port=port, reload=reload, log_level=log_level)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the ryoshu web API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", "-p", default=8000, type=int)
    parser.add_argument("--project", default=None, metavar="NAME")
    parser.add_argument("--db", default=None, metavar="FILE")
    parser.add_argument("--reload", action="store_true")
    parser.add_argument("--no-browser", action="store_true")
    parser.add_argument("--log-level", default="warning",
                        choices=["debug", "info", "warning", "error"])
    args = parser.parse_args(argv)

    try:
        launch(
            args.host,
            args.port,
            project=args.project,
            db_path=Path(args.db) if args.db else None,
            reload=args.reload,
            open_browser=not args.no_browser,
            log_level=args.log_level,
        )
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
