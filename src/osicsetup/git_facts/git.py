# git.py
# Small, focused wrapper around the Git CLI.
# Mutating operations (clone, checkout, pull) are returned as Steps so they go
# through the CommandRunner (dry-run, retries). Read-only queries call git directly.

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path
from typing import Optional

from ..model import Step


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Raises subprocess.CalledProcessError on non-zero exit.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def clone_step(url: str, dest: str | Path) -> Step:
    """`git clone <url> <dest>`; needs the network."""
    return Step(
        name=f"Clone {url}",
        run=f"git clone {shlex.quote(url)} {shlex.quote(str(dest))}",
        network=True,
    )


def checkout_step(ref: str, checkout: str | Path) -> Step:
    """Switch an existing checkout to a branch or tag."""
    return Step(
        name=f"Checkout {ref}",
        run=f"git checkout {shlex.quote(ref)}",
        cwd=str(checkout),
    )


def pull_step(checkout: str | Path) -> Step:
    """Fetch + merge upstream changes into an existing checkout."""
    return Step(
        name="Pull latest changes",
        run="git pull",
        cwd=str(checkout),
        network=True,
    )


def current_ref(checkout: str | Path) -> Optional[str]:
    """
    Return the branch name of a checkout, or the short SHA when detached.
    None if `checkout` is not a git working tree.
    """
    try:
        ref = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=str(checkout))
        if ref == "HEAD":
            return _git(["rev-parse", "--short", "HEAD"], cwd=str(checkout))
        return ref
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        return None
