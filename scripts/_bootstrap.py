from __future__ import annotations

import sys
from pathlib import Path


def bootstrap(additional_paths: list[Path] | None = None) -> None:
    """Make the repository's `apps/` directory importable so `import telecare` works.

    Environment variables (and `.env` files) are picked up by
    `telecare.core.settings` on first import; callers may add extra paths.
    """
    repo_root = Path(__file__).resolve().parents[1]
    apps_dir = repo_root / "apps"
    if str(apps_dir) not in sys.path:
        sys.path.insert(0, str(apps_dir))

    for p in additional_paths or []:
        if str(p) not in sys.path:
            sys.path.insert(0, str(p))
