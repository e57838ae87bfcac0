# orchestrator.py
from __future__ import annotations

import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from . import catalog
from .config import EnvironmentConfig
from .dag import plan
from .dsl import sh
from .hostinfo import read_os_release, release_version
from .initscripts import reduce_models, write_init_script, write_model_reduction_script, write_spiceinit
from .model import PatchRule, ToolSpec, VerificationResult
from .packages import install_system_packages
from .patcher import apply_rules
from .runner import CommandRunner, SetupError, StepFailure
from .tools import ensure_tool
from .ui.console import get_console

PhaseResult = Union[None, VerificationResult, List[VerificationResult]]


@dataclass
class Phase:
    """One unit of the setup workflow."""
    name: str
    action: Callable[[], PhaseResult]
    needs: list[str] = field(default_factory=list)
    fatal: bool = False


@dataclass
class SetupReport:
    results: List[VerificationResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def failed(self) -> List[VerificationResult]:
        return [r for r in self.results if not r.passed]


# ----------------------------------------------------------------------
# Phase actions that are not tool installs
# ----------------------------------------------------------------------

def create_pdk_root(config: EnvironmentConfig, runner: CommandRunner) -> None:
    if config.pdk_root.exists():
        return
    get_console().print_header(f"Creating PDK directory {config.pdk_root}")
    root = shlex.quote(str(config.pdk_root))
    runner.run("pdk-root", sh("Create PDK root", f"sudo mkdir -p {root}"))
    runner.run("pdk-root", sh("Hand PDK root to user", f'sudo chown "$USER:staff" {root}'))


def patch_file(name: str, path: Path, rules: Sequence[PatchRule], *, dry_run: bool = False) -> None:
    console = get_console()
    if dry_run and not path.exists():
        console.print_action(f"patch {path}", dry_run=True)
        return
    if not path.exists():
        raise SetupError(
            kind="missing_file",
            tool=name,
            step=None,
            message=f"file to patch not found: {path}",
            details={"hint": "Is the PDK installed? Re-run without --skip-tool pdk."},
        )
    changed = apply_rules(path, rules, dry_run=dry_run)
    console.print_action(f"{'Patched' if changed else 'Already up to date'}: {path}", dry_run=dry_run)


def magicrc_path(config: EnvironmentConfig) -> Path:
    return config.pdk_dir / "libs.tech" / "magic" / f"{config.pdk}.magicrc"


def xschemrc_path(config: EnvironmentConfig) -> Path:
    return config.pdk_dir / "libs.tech" / "xschem" / "xschemrc"


def cleanup(config: EnvironmentConfig, *, dry_run: bool = False) -> None:
    console = get_console()
    console.print_header("Cleaning up source directory")
    if not config.src_dir.exists():
        return
    console.print_action(f"Remove {config.src_dir}", dry_run=dry_run)
    if not dry_run:
        shutil.rmtree(config.src_dir)


# ----------------------------------------------------------------------
# Workflow
# ----------------------------------------------------------------------

def default_phases(
    config: EnvironmentConfig,
    runner: CommandRunner,
    tools: Sequence[ToolSpec],
    *,
    release: str = "",
    os_release: Optional[Dict[str, str]] = None,
    keep_sources: bool = False,
) -> List[Phase]:
    dry_run = runner.dry_run
    console = get_console()
    tool_names = [t.name for t in tools]
    after_pdk = ["pdk"] if "pdk" in tool_names else []

    def tool_phase(spec: ToolSpec) -> Phase:
        return Phase(
            name=spec.name,
            action=lambda: ensure_tool(spec, config, runner, release=release),
            needs=["packages", "pdk-root", *spec.needs],
            fatal=spec.fatal,
        )

    def packages() -> PhaseResult:
        return install_system_packages(config, runner, os_release=os_release)

    def pdk_root() -> PhaseResult:
        create_pdk_root(config, runner)

    def model_reduction() -> PhaseResult:
        console.print_header("Applying SPICE model library reducer")
        write_model_reduction_script(config, dry_run=dry_run)
        reduce_models(config, runner)

    def magicrc() -> PhaseResult:
        console.print_header("Add custom bindkeys to magicrc")
        patch_file("magicrc", magicrc_path(config), catalog.magicrc_rules(config), dry_run=dry_run)

    def xschemrc() -> PhaseResult:
        console.print_header("Fix paths in xschemrc")
        patch_file("xschemrc", xschemrc_path(config), catalog.xschemrc_rules(config), dry_run=dry_run)

    def spiceinit() -> PhaseResult:
        console.print_header("Create .spiceinit")
        write_spiceinit(config, dry_run=dry_run)

    def init_script() -> PhaseResult:
        console.print_header(f"Create {config.home / 'iic-init.sh'}")
        write_init_script(config, dry_run=dry_run)

    # flow + PDK first; the PDK patches follow right after, then the other tools
    core = [t for t in tools if t.fatal or t.name == "pdk"]
    rest = [t for t in tools if t not in core]

    phases: List[Phase] = [
        Phase("packages", packages, fatal=True),
        Phase("pdk-root", pdk_root, fatal=True),
    ]
    phases += [tool_phase(t) for t in core]
    phases += [
        Phase("model-reduction", model_reduction, needs=after_pdk),
        Phase("magicrc", magicrc, needs=after_pdk),
    ]
    phases += [tool_phase(t) for t in rest]
    phases += [
        Phase("xschemrc", xschemrc, needs=after_pdk),
        Phase("spiceinit", spiceinit),
        Phase("init-script", init_script),
    ]
    if not keep_sources:
        phases.append(Phase("cleanup", lambda: cleanup(config, dry_run=dry_run), needs=tool_names))
    return phases


def _collect(report: SetupReport, out: PhaseResult) -> None:
    if out is None:
        return
    if isinstance(out, VerificationResult):
        report.results.append(out)
    else:
        report.results.extend(out)


def run_phases(phases: Iterable[Phase], *, skip: Iterable[str] = ()) -> SetupReport:
    """
    Run phases one after another in dependency order.

    Non-fatal failures are recorded and the run continues; a fatal failure
    raises SetupError. Skipped phases count as done for their dependents.
    """
    console = get_console()
    phases = list(phases)
    skip_set = set(skip)

    unknown = sorted(skip_set - {p.name for p in phases})
    if unknown:
        raise SetupError(
            kind="unknown_tool",
            tool=", ".join(unknown),
            step=None,
            message=f"cannot skip unknown tool(s): {', '.join(unknown)}",
            details={"known": ", ".join(p.name for p in phases)},
        )

    report = SetupReport()
    for phase in plan(phases):
        if phase.name in skip_set:
            console.print_header(f"Skipping {phase.name}")
            report.skipped.append(phase.name)
            report.results.append(VerificationResult(name=phase.name, passed=True, detail="skipped"))
            continue

        try:
            _collect(report, phase.action())
        except SetupError as e:
            if phase.fatal:
                raise
            console.print_failure(phase.name, str(e), hint=e.details.get("hint"))
            report.results.append(VerificationResult(name=phase.name, passed=False, detail=e.message))
        except (StepFailure, OSError) as e:
            if phase.fatal:
                raise SetupError(
                    kind="fatal_phase",
                    tool=phase.name,
                    step=getattr(e, "step", None),
                    message=f"{phase.name} failed; later steps depend on it",
                    details={"cause": str(e)},
                ) from e
            console.print_failure(
                phase.name,
                str(e),
                exit_code=getattr(e, "exit_code", None),
                hint=getattr(e, "hint", None),
            )
            report.results.append(VerificationResult(name=phase.name, passed=False, detail=str(e).split("\n")[0]))

    return report


def run_setup(
    config: EnvironmentConfig,
    runner: CommandRunner,
    *,
    tools: Optional[Sequence[ToolSpec]] = None,
    skip: Iterable[str] = (),
    keep_sources: bool = False,
    os_release: Optional[Dict[str, str]] = None,
) -> SetupReport:
    """Full bootstrap: packages, tools, PDK patches, init scripts, cleanup."""
    tool_list = list(tools) if tools is not None else catalog.default_tools()
    info = os_release if os_release is not None else read_os_release()
    phases = default_phases(
        config,
        runner,
        tool_list,
        release=release_version(info),
        os_release=info,
        keep_sources=keep_sources,
    )
    return run_phases(phases, skip=skip)
