from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_ENV = "PINBALL_TRAINER_LOG_LEVEL"


def _ensure_repo_root_on_path() -> None:
    """Put the directory holding ``pinball_trainer`` on ``sys.path``.

    Needed when this file is run directly (``python pinball_trainer/__main__.py``)
    rather than with ``python -m pinball_trainer``.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # python -m pinball_trainer
    from .app import run  # type: ignore[attr-defined]
except ImportError:
    _ensure_repo_root_on_path()
    from pinball_trainer.app import run  # type: ignore[attr-defined]


def _configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> int:
    """Entry point for running the trainer from the command line."""
    _configure_logging()
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
