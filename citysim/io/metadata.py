from __future__ import annotations

import platform
import subprocess
import sys
from importlib import metadata
from typing import Dict, Optional

from citysim.rng import RandomStream


def _pkg_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return "unknown"


def build_run_metadata(rng: Optional[RandomStream], run_name: str) -> Dict[str, str]:
    try:
        git_hash = subprocess.check_output(
            ["git", "rev-parse", "HEAD"],
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        git_hash = "unknown"
    return {
        "python_version": sys.version.split()[0],
        "platform": platform.platform(),
        "numpy_version": _pkg_version("numpy"),
        "pandas_version": _pkg_version("pandas"),
        "pydantic_version": _pkg_version("pydantic"),
        "citysim_version": _pkg_version("citysim"),
        "git_commit": git_hash,
        "run_name": run_name,
        "seed": str(rng.seed) if rng is not None else "savestate",
        "deterministic": str(rng.deterministic) if rng is not None else "True",
    }
