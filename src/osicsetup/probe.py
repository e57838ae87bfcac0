# probe.py
from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from .config import EnvironmentConfig
from .model import Probe


def probe(binary_name: str) -> bool:
    """True if `binary_name` resolves on the current PATH."""
    return shutil.which(binary_name) is not None


def probe_file(path: str | Path) -> bool:
    return Path(path).exists()


def probe_python(module: str, interpreter: str = "python3") -> bool:
    """True if `<interpreter> -c "import <module>"` succeeds."""
    try:
        proc = subprocess.run(
            [interpreter, "-c", f"import {module}"],
            capture_output=True,
            check=False,
        )
    except FileNotFoundError:
        return False
    return proc.returncode == 0


def check(p: Probe, config: EnvironmentConfig, checkout: str | Path | None = None) -> bool:
    """Evaluate a Probe; its target is expanded against the config."""
    extra = {"CHECKOUT": str(checkout)} if checkout is not None else {}
    target = config.expand(p.target, **extra)

    if p.kind == "binary":
        return probe(target)
    if p.kind == "file":
        return probe_file(target)
    if p.kind == "python":
        return probe_python(target)
    raise ValueError(f"Unknown probe kind: {p.kind!r}")


def describe(p: Probe) -> str:
    """Short label for status lines."""
    if p.kind == "file":
        return Path(p.target).name
    return p.target
