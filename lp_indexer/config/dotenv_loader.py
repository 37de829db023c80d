"""
Explicit dotenv loader.

Outside prod, `.env` is loaded first and `.env.local` on top of it, so a
developer can point DATABASE_URL at a local database without touching the
shared file. In prod (`ENVIRONMENT=prod`) nothing is loaded.

Must not import `lp_indexer.config.config`: run.py calls this before the
config module reads the environment.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# (file name, override already-set variables)
DOTENV_FILES = ((".env", False), (".env.local", True))


def _is_prod_env() -> bool:
    return (os.getenv("ENVIRONMENT") or "dev").strip().lower() == "prod"


def load_dotenv_files(*, repo_root: Path | None = None) -> List[Path]:
    """
    Load dotenv files for local/dev usage.

    Returns:
        The files that were loaded, in load order
    """
    if _is_prod_env():
        return []

    root = repo_root or Path(__file__).resolve().parent.parent.parent
    loaded = []
    for name, override in DOTENV_FILES:
        path = root / name
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
            loaded.append(path)
    return loaded
