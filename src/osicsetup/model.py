# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict


@dataclass(frozen=True)
class Step:
    """A single shell command inside a tool install."""
    name: str
    run: str
    cwd: str | None = None
    network: bool = False      # retried with backoff when True


@dataclass(frozen=True)
class Probe:
    """
    Post-install verification.

    kind:
      - "binary": target resolvable on PATH
      - "file":   target path exists
      - "python": `python3 -c "import <target>"` succeeds
    """
    kind: str
    target: str


@dataclass(frozen=True)
class PatchRule:
    """
    One declarative line patch.

    pattern + replacement: rewrite matching lines (re.sub on the line)
    append:                add this line if the file does not contain it yet
    """
    pattern: str | None = None
    replacement: str | None = None
    append: str | None = None


@dataclass(frozen=True)
class PlatformPatch:
    """Apply `rule` to `path` (relative to the checkout) when the OS release matches `release`."""
    release: str
    path: str
    rule: PatchRule


class ToolState(str, Enum):
    NOT_INSTALLED = "not-installed"
    INSTALLED = "installed"


@dataclass
class ToolSpec:
    """
    An external tool: where it comes from + how to build and verify it.

    source_kind:
      - "git":     `source` is a clone URL
      - "archive": `source` is a .tar.gz URL, unpacked into src_dir
      - "none":    nothing to fetch, steps run in `checkout`
    """
    name: str
    source: str | None
    checkout: str                      # may reference $SRC_DIR, $HOME, ...
    source_kind: str = "git"
    ref: str | None = None

    install_steps: list[Step] = field(default_factory=list)   # fresh checkout only
    build_steps: list[Step] = field(default_factory=list)     # every sync

    probe: Optional[Probe] = None
    fatal: bool = False
    needs: list[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)

    platform_patches: List[PlatformPatch] = field(default_factory=list)
    artifacts: List[tuple[str, str]] = field(default_factory=list)   # (checkout-relative src, dest)


@dataclass(frozen=True)
class VerificationResult:
    name: str
    passed: bool
    detail: str = ""
