from __future__ import annotations

import logging
import os
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Ensure the repository root (parent of this package) is on ``sys.path``.

    Lets ``python map_quiz/__main__.py`` work as well as ``python -m map_quiz``.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # Works when executed as a module: python -m map_quiz
    from .app import run
    from .config import ENV_LOG_LEVEL
except ImportError:
    # Works when executed as a script (absolute path, IDE "run file")
    _ensure_repo_root_on_path()
    from map_quiz.app import run
    from map_quiz.config import ENV_LOG_LEVEL


def main() -> int:
    """Entry point for running the quiz from the command line."""
    level = os.environ.get(ENV_LOG_LEVEL, "WARNING").strip().upper() or "WARNING"
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format="%(levelname)s %(name)s: %(message)s")
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
