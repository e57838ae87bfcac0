# tools.py
from __future__ import annotations

import shlex
import shutil
from pathlib import Path
from typing import Dict, List

from .config import EnvironmentConfig
from .dsl import sh
from .git_facts.git import checkout_step, clone_step, pull_step
from .hostinfo import release_matches
from .model import Step, ToolSpec, ToolState, VerificationResult
from .patcher import apply_rules
from .probe import check, describe
from .runner import CommandRunner, SetupError, StepFailure
from .ui.console import get_console


# ----------------------------------------------------------------------
# Paths / env
# ----------------------------------------------------------------------

def checkout_path(spec: ToolSpec, config: EnvironmentConfig) -> Path:
    return Path(config.expand(spec.checkout)).expanduser()


def tool_env(spec: ToolSpec, config: EnvironmentConfig) -> Dict[str, str]:
    env = config.variables()
    env.update(spec.env)
    return env


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

def detect_state(spec: ToolSpec, config: EnvironmentConfig) -> ToolState:
    """INSTALLED iff the local checkout exists."""
    if checkout_path(spec, config).exists():
        return ToolState.INSTALLED
    return ToolState.NOT_INSTALLED


def _fetch_steps(spec: ToolSpec, config: EnvironmentConfig, checkout: Path) -> List[Step]:
    if spec.source_kind == "git":
        steps = [clone_step(config.expand(spec.source or ""), checkout)]
        if spec.ref:
            steps.append(checkout_step(spec.ref, checkout))
        return steps

    if spec.source_kind == "archive":
        url = config.expand(spec.source or "")
        parent = checkout.parent
        archive = parent / url.rstrip("/").split("/")[-1]
        q_parent, q_archive = shlex.quote(str(parent)), shlex.quote(str(archive))
        return [
            sh("Create source directory", f"mkdir -p {q_parent}"),
            sh(f"Download {archive.name}", f"wget -q {shlex.quote(url)} -O {q_archive}", network=True),
            sh(f"Unpack {archive.name}", f"tar xzf {q_archive} -C {q_parent}"),
            sh(f"Remove {archive.name}", f"rm -f {q_archive}"),
        ]

    return []


def sync(spec: ToolSpec, state: ToolState, config: EnvironmentConfig, runner: CommandRunner) -> ToolState:
    """
    Bring the checkout up to date:
      NOT_INSTALLED -> clone (or download) + one-time install steps
      INSTALLED     -> pull (archives and "none" sources have nothing to pull)
    """
    checkout = checkout_path(spec, config)
    env = tool_env(spec, config)

    if spec.source_kind == "none":
        return state

    if state is ToolState.NOT_INSTALLED:
        for step in _fetch_steps(spec, config, checkout):
            runner.run(spec.name, step, env=env)
        for step in spec.install_steps:
            runner.run(spec.name, step, cwd=checkout, env=env)
        return ToolState.INSTALLED

    if spec.source_kind == "git":
        runner.run(spec.name, pull_step(checkout), env=env)
    return ToolState.INSTALLED


def apply_platform_patches(
    spec: ToolSpec,
    config: EnvironmentConfig,
    release: str,
    *,
    dry_run: bool = False,
) -> List[Path]:
    """Apply the tool's patch-if entries whose release glob matches. Returns patched files."""
    console = get_console()
    checkout = checkout_path(spec, config)
    patched: List[Path] = []

    for pp in spec.platform_patches:
        if not release_matches(release, pp.release):
            console.print_debug(f"{spec.name}: skip patch for {pp.path} (release {release!r} !~ {pp.release!r})")
            continue
        target = checkout / pp.path
        if not target.exists():
            if dry_run:
                console.print_action(f"patch {target}", dry_run=True)
            else:
                console.print_debug(f"{spec.name}: {target} not present, nothing to patch")
            continue
        if apply_rules(target, [pp.rule], dry_run=dry_run):
            console.print_action(f"Patched {target} for release {release}", dry_run=dry_run)
            patched.append(target)
    return patched


def build(spec: ToolSpec, config: EnvironmentConfig, runner: CommandRunner) -> None:
    checkout = checkout_path(spec, config)
    env = tool_env(spec, config)
    for step in spec.build_steps:
        runner.run(spec.name, step, cwd=checkout, env=env)


def copy_artifacts(spec: ToolSpec, config: EnvironmentConfig, *, dry_run: bool = False) -> List[Path]:
    """Copy files out of the checkout; an existing destination is left untouched."""
    console = get_console()
    checkout = checkout_path(spec, config)
    copied: List[Path] = []
    for src_rel, dest in spec.artifacts:
        src = checkout / src_rel
        dst = Path(config.expand(dest))
        if dst.exists():
            continue
        console.print_action(f"Copy {src} -> {dst}", dry_run=dry_run)
        if not dry_run:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
        copied.append(dst)
    return copied


def verify(spec: ToolSpec, config: EnvironmentConfig) -> VerificationResult:
    if spec.probe is None:
        return VerificationResult(name=spec.name, passed=True, detail="no probe")
    passed = check(spec.probe, config, checkout=checkout_path(spec, config))
    get_console().print_status(f"{spec.name} installation ({describe(spec.probe)})", passed)
    return VerificationResult(
        name=spec.name,
        passed=passed,
        detail="" if passed else f"{spec.probe.kind} probe failed: {config.expand(spec.probe.target)}",
    )


def ensure_tool(
    spec: ToolSpec,
    config: EnvironmentConfig,
    runner: CommandRunner,
    *,
    release: str = "",
) -> VerificationResult:
    """
    detect -> sync -> platform patches -> build -> artifacts -> probe.

    A failing step or probe is reported and returned as a failed result, except
    for fatal tools, where it raises SetupError so the run stops.
    """
    console = get_console()
    state = detect_state(spec, config)
    verb = "Installing" if state is ToolState.NOT_INSTALLED else "Updating"
    console.print_header(f"{verb} {spec.name}")

    try:
        sync(spec, state, config, runner)
        apply_platform_patches(spec, config, release, dry_run=runner.dry_run)
        build(spec, config, runner)
        copy_artifacts(spec, config, dry_run=runner.dry_run)
    except (StepFailure, SetupError, OSError) as e:
        if spec.fatal:
            raise SetupError(
                kind="fatal_tool",
                tool=spec.name,
                step=getattr(e, "step", None),
                message=f"{spec.name} could not be installed; later steps depend on it",
                details={"cause": str(e).split("\n")[0]},
            ) from e
        console.print_failure(
            spec.name,
            str(e),
            exit_code=getattr(e, "exit_code", None),
            hint=getattr(e, "hint", None),
        )
        return VerificationResult(name=spec.name, passed=False, detail=str(e).split("\n")[0])

    result = verify(spec, config)
    if spec.fatal and not result.passed and not runner.dry_run:
        raise SetupError(
            kind="verification_failed",
            tool=spec.name,
            step=None,
            message=f"{spec.name} did not pass verification; later steps depend on it",
            details={"probe": result.detail},
        )
    return result
