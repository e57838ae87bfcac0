# src/osicsetup/dsl.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .model import PatchRule, PlatformPatch, Probe, Step, ToolSpec


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None, network: bool = False) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd, network=network)


def make_install(*, sudo_install: bool = True) -> List[Step]:
    """`make -j$(nproc)` followed by `make install`."""
    install = "sudo make install" if sudo_install else "make install"
    return [
        sh("Build", 'make -j"$(nproc)"'),
        sh("Install", install),
    ]


# ---------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------

def binary(name: str) -> Probe:
    return Probe(kind="binary", target=name)


def file_exists(path: str) -> Probe:
    return Probe(kind="file", target=path)


def python_module(name: str) -> Probe:
    return Probe(kind="python", target=name)


# ---------------------------------------------------------------------
# Platform patches
# ---------------------------------------------------------------------

def when_release(release: str, path: str, rule: PatchRule) -> PlatformPatch:
    """
    Patch `path` (relative to the checkout) before building, but only on
    hosts whose OS release matches the glob `release`.
    """
    return PlatformPatch(release=release, path=path, rule=rule)


# ---------------------------------------------------------------------
# Tool helpers
# ---------------------------------------------------------------------

def tool(
    name: str,
    source: Optional[str],
    checkout: str,
    *,
    source_kind: str = "git",
    ref: Optional[str] = None,
    install: Optional[List[Step]] = None,
    build: Optional[List[Step]] = None,
    probe: Optional[Probe] = None,
    fatal: bool = False,
    needs: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    patches: Optional[List[PlatformPatch]] = None,
    artifacts: Optional[List[Tuple[str, str]]] = None,
) -> ToolSpec:
    if source_kind not in ("git", "archive", "none"):
        raise ValueError(f"tool({name!r}): unknown source_kind {source_kind!r}")
    if source_kind != "none" and not source:
        raise ValueError(f"tool({name!r}) needs a source URL for source_kind={source_kind!r}")
    if ref is not None and source_kind != "git":
        raise ValueError(f"tool({name!r}): ref is only meaningful for git sources")

    return ToolSpec(
        name=name,
        source=source,
        checkout=checkout,
        source_kind=source_kind,
        ref=ref,
        install_steps=list(install or []),
        build_steps=list(build or []),
        probe=probe,
        fatal=fatal,
        needs=list(needs or []),
        env={k: str(v) for k, v in (env or {}).items()},
        platform_patches=list(patches or []),
        artifacts=list(artifacts or []),
    )


def git_tool(name: str, url: str, checkout: str, **kwargs) -> ToolSpec:
    return tool(name, url, checkout, source_kind="git", **kwargs)


def archive_tool(name: str, url: str, checkout: str, **kwargs) -> ToolSpec:
    return tool(name, url, checkout, source_kind="archive", **kwargs)


def catalog(*tools: ToolSpec) -> List[ToolSpec]:
    """Ordered tool list; names must be unique."""
    names = [t.name for t in tools]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ValueError(f"Duplicate tool names found: {dupes}")
    return list(tools)
