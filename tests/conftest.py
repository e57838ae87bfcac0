from __future__ import annotations

import shlex
from pathlib import Path

import pytest

from osicsetup.config import EnvironmentConfig
from osicsetup.dsl import binary, git_tool, make_install, sh
from osicsetup.runner import CommandRunner, StepFailure
from osicsetup.ui.console import Console, set_console

UBUNTU_2204 = {"ID": "ubuntu", "VERSION_ID": "22.04", "UBUNTU_CODENAME": "jammy", "VERSION_CODENAME": "jammy"}
SIX_TOOLS = ["xschem", "gaw", "magic", "netgen", "ngspice", "spyci"]


class FakeRunner(CommandRunner):
    """Records commands instead of running them; `git clone` creates the target dir."""

    def __init__(self, *, fail_on=(), dry_run=False, retries=3):
        super().__init__(dry_run=dry_run, retries=retries, sleep=lambda s: None)
        self.calls = []
        self.fail_on = list(fail_on)

    def _run_once(self, tool, step, cwd, env):
        self.calls.append((tool, step.run, str(cwd) if cwd else None))
        for pattern in self.fail_on:
            if pattern in step.run:
                raise StepFailure(tool=tool, step=step.name, cmd=step.run, exit_code=1)
        if not self.dry_run and step.run.startswith("git clone"):
            Path(shlex.split(step.run)[-1]).mkdir(parents=True, exist_ok=True)

    @property
    def commands(self):
        return [c[1] for c in self.calls]

    def commands_for(self, tool):
        return [c[1] for c in self.calls if c[0] == tool]


@pytest.fixture(autouse=True)
def quiet_console():
    console = Console(debug=False, color=False)
    set_console(console)
    return console


@pytest.fixture
def config(tmp_path) -> EnvironmentConfig:
    home = tmp_path / "home"
    home.mkdir()
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    return EnvironmentConfig(
        home=home,
        pdk_root=tmp_path / "pdk",
        src_dir=tmp_path / "src",
        openlane_dir=tmp_path / "OpenLane",
        script_dir=scripts,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def all_binaries_present(monkeypatch):
    monkeypatch.setattr("osicsetup.probe.shutil.which", lambda name: f"/usr/local/bin/{name}")


@pytest.fixture
def pdk_tree(config):
    """A minimal installed PDK: magicrc, xschemrc, ngspice dir."""
    tech = config.pdk_dir / "libs.tech"
    (tech / "magic").mkdir(parents=True)
    (tech / "xschem").mkdir(parents=True)
    (tech / "ngspice").mkdir(parents=True)
    (tech / "magic" / f"{config.pdk}.magicrc").write_text("tech load $PDK_ROOT/sky130A/libs.tech/magic/sky130A.tech\n")
    (tech / "xschem" / "xschemrc").write_text(
        "set SKYWATER_MODELS /foundry/models\n"
        "set SKYWATER_STDCELLS /foundry/stdcells\n"
        "append XSCHEM_LIBRARY_PATH :/foo\n"
    )
    return tech


def make_six_tools():
    return [
        git_tool(
            name,
            f"https://example.invalid/{name}.git",
            f"$SRC_DIR/{name}",
            install=[sh("Configure", "./configure")],
            build=make_install(),
            probe=binary(name),
        )
        for name in SIX_TOOLS
    ]


@pytest.fixture
def six_tools():
    return make_six_tools()
