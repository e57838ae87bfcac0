# initscripts.py
from __future__ import annotations

import shlex
from pathlib import Path
from typing import List

from . import catalog
from .config import EnvironmentConfig
from .dsl import sh
from .model import Step
from .runner import CommandRunner
from .ui.console import get_console

SPICEINIT_LINES = [
    "set num_threads=2",
    "set ngbehavior=hsa",
    "set ng_nomodcheck",
]

INIT_SCRIPT_NAME = "iic-init.sh"
REDUCTION_SCRIPT_NAME = "iic-model-red.sh"
INIT_SCRIPT_MODE = 0o750

INIT_SCRIPT_HEADER = [
    "#!/bin/sh",
    "#",
    "# (c) 2021-2022 Harald Pretl",
    "# Institute for Integrated Circuits",
    "# Johannes Kepler University Linz",
    "#",
]


def _write(path: Path, lines: List[str], *, mode: int | None = None, dry_run: bool = False) -> Path:
    get_console().print_action(f"Write {path}", dry_run=dry_run)
    if dry_run:
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    if mode is not None:
        path.chmod(mode)
    return path


# ----------------------------------------------------------------------
# ~/.spiceinit
# ----------------------------------------------------------------------

def write_spiceinit(config: EnvironmentConfig, *, dry_run: bool = False) -> Path:
    """Overwrite ~/.spiceinit with the three ngspice settings."""
    return _write(config.home / ".spiceinit", SPICEINIT_LINES, dry_run=dry_run)


# ----------------------------------------------------------------------
# ~/iic-init.sh
# ----------------------------------------------------------------------

def init_script_lines(config: EnvironmentConfig) -> List[str]:
    # the cp lines are expanded when the script runs, not now
    return INIT_SCRIPT_HEADER + [
        f"export PDK_ROOT={shlex.quote(str(config.pdk_root))}",
        f"export PDK={shlex.quote(config.pdk)}",
        f"export STD_CELL_LIBRARY={shlex.quote(config.std_cell_library)}",
        "cp -f $PDK_ROOT/$PDK/libs.tech/xschem/xschemrc $HOME/.xschem",
        "cp -f $PDK_ROOT/$PDK/libs.tech/magic/$PDK.magicrc $HOME/.magicrc",
    ]


def write_init_script(config: EnvironmentConfig, *, dry_run: bool = False) -> Path:
    """Write ~/iic-init.sh (mode 750) and make sure ~/.xschem exists for its cp."""
    xschem_dir = config.home / ".xschem"
    if not xschem_dir.exists():
        get_console().print_action(f"Create {xschem_dir}", dry_run=dry_run)
        if not dry_run:
            xschem_dir.mkdir(parents=True)
    return _write(
        config.home / INIT_SCRIPT_NAME,
        init_script_lines(config),
        mode=INIT_SCRIPT_MODE,
        dry_run=dry_run,
    )


# ----------------------------------------------------------------------
# SPICE model library reduction
# ----------------------------------------------------------------------

def ngspice_dir(config: EnvironmentConfig) -> Path:
    return config.pdk_dir / "libs.tech" / "ngspice"


def model_reduction_commands(config: EnvironmentConfig) -> List[str]:
    """One helper call per corner: tt, ss, ff (in that order)."""
    helper = shlex.quote(str(config.script_dir / catalog.MODEL_REDUCER))
    return [f"{helper} {catalog.MODEL_LIBRARY} {corner}" for corner in catalog.CORNERS]


def write_model_reduction_script(config: EnvironmentConfig, *, dry_run: bool = False) -> Path:
    """Keep the reduction calls next to the model library so they can be re-run by hand."""
    lines = ["#!/bin/sh", f"cd {shlex.quote(str(ngspice_dir(config)))} || exit 1"]
    lines += model_reduction_commands(config)
    return _write(
        ngspice_dir(config) / REDUCTION_SCRIPT_NAME,
        lines,
        mode=INIT_SCRIPT_MODE,
        dry_run=dry_run,
    )


def reduction_steps(config: EnvironmentConfig) -> List[Step]:
    return [
        sh(f"Reduce {catalog.MODEL_LIBRARY} ({corner})", cmd)
        for corner, cmd in zip(catalog.CORNERS, model_reduction_commands(config))
    ]


def reduce_models(config: EnvironmentConfig, runner: CommandRunner) -> None:
    """Run the model-library reducer in the PDK's ngspice directory, once per corner."""
    cwd = ngspice_dir(config)
    for step in reduction_steps(config):
        runner.run("model-reduction", step, cwd=cwd, env=config.variables())
