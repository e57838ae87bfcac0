import pytest

from osicsetup.dag import plan
from osicsetup.orchestrator import Phase, run_phases, run_setup
from osicsetup.model import VerificationResult
from osicsetup.runner import SetupError, StepFailure

from conftest import SIX_TOOLS, UBUNTU_2204, FakeRunner, make_six_tools


def _names(phases):
    return [p.name for p in phases]


def test_plan_keeps_declaration_order_when_valid():
    phases = [Phase("a", lambda: None), Phase("b", lambda: None, needs=["a"]), Phase("c", lambda: None)]
    assert _names(plan(phases)) == ["a", "b", "c"]


def test_plan_moves_phase_after_its_dependency():
    phases = [Phase("b", lambda: None, needs=["a"]), Phase("c", lambda: None), Phase("a", lambda: None)]
    assert _names(plan(phases)) == ["c", "a", "b"]


@pytest.mark.parametrize(
    "phases, message",
    [
        ([Phase("a", lambda: None), Phase("a", lambda: None)], "Duplicate"),
        ([Phase("a", lambda: None, needs=["zzz"])], "missing phase"),
        ([Phase("a", lambda: None, needs=["b"]), Phase("b", lambda: None, needs=["a"])], "cycle"),
    ],
)
def test_plan_rejects_bad_graphs(phases, message):
    with pytest.raises(ValueError, match=message):
        plan(phases)


def test_run_phases_continues_after_non_fatal_failure():
    ran = []

    def boom():
        raise StepFailure(tool="x", step="s", cmd="false", exit_code=1)

    report = run_phases([
        Phase("x", boom),
        Phase("y", lambda: ran.append("y") or VerificationResult("y", True)),
    ])
    assert ran == ["y"]
    assert [(r.name, r.passed) for r in report.results] == [("x", False), ("y", True)]


def test_run_phases_stops_on_fatal_failure():
    ran = []

    def boom():
        raise StepFailure(tool="x", step="s", cmd="false", exit_code=1)

    with pytest.raises(SetupError) as exc:
        run_phases([Phase("x", boom, fatal=True), Phase("y", lambda: ran.append("y"))])
    assert exc.value.kind == "fatal_phase"
    assert ran == []


def test_skip_unknown_tool_is_an_error(config, runner):
    with pytest.raises(SetupError) as exc:
        run_setup(config, runner, tools=make_six_tools(), skip=["nonsense"], os_release=UBUNTU_2204)
    assert exc.value.kind == "unknown_tool"
    assert runner.calls == []


def test_skipped_tool_is_not_touched(config, runner, pdk_tree, all_binaries_present):
    report = run_setup(
        config, runner, tools=make_six_tools(), skip=["magic"], keep_sources=True, os_release=UBUNTU_2204,
    )
    assert runner.commands_for("magic") == []
    assert "magic" in report.skipped
    assert report.failed == []


def test_fresh_install_clones_builds_and_verifies_all_tools(config, runner, pdk_tree, all_binaries_present):
    report = run_setup(config, runner, tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)

    for name in SIX_TOOLS:
        cmds = runner.commands_for(name)
        assert cmds[0] == f"git clone https://example.invalid/{name}.git {config.src_dir / name}"
        assert "git pull" not in cmds
        assert cmds[1:] == ["./configure", 'make -j"$(nproc)"', "sudo make install"]

    by_name = {r.name: r for r in report.results}
    assert all(by_name[name].passed for name in SIX_TOOLS)
    assert report.failed == []


def test_existing_checkouts_are_pulled_and_rebuilt(config, runner, pdk_tree, all_binaries_present):
    for name in SIX_TOOLS:
        (config.src_dir / name).mkdir(parents=True)

    report = run_setup(config, runner, tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)

    for name in SIX_TOOLS:
        assert runner.commands_for(name) == ["git pull", 'make -j"$(nproc)"', "sudo make install"]
    assert not any(c.startswith("git clone") for c in runner.commands)
    assert report.failed == []


def test_rerun_is_idempotent(config, pdk_tree, all_binaries_present):
    first = run_setup(config, FakeRunner(), tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)
    files = [
        pdk_tree / "magic" / "sky130A.magicrc",
        pdk_tree / "xschem" / "xschemrc",
        config.home / ".spiceinit",
        config.home / "iic-init.sh",
    ]
    snapshot = [f.read_text() for f in files]

    second_runner = FakeRunner()
    second = run_setup(config, second_runner, tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)

    assert [(r.name, r.passed) for r in first.results] == [(r.name, r.passed) for r in second.results]
    assert [f.read_text() for f in files] == snapshot
    assert not any(c.startswith("rm -rf") or c.startswith("git clone") for c in second_runner.commands)


def test_magicrc_gets_bindkeys(config, runner, pdk_tree, all_binaries_present):
    run_setup(config, runner, tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)
    lines = (pdk_tree / "magic" / "sky130A.magicrc").read_text().splitlines()
    assert lines[-2:] == [
        "# Custom bindkeys for IIC",
        f"source {config.script_dir / 'iic-magic-bindkeys'}",
    ]


def test_model_reduction_runs_three_times(config, runner, pdk_tree, all_binaries_present):
    run_setup(config, runner, tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)
    calls = runner.commands_for("model-reduction")
    assert len(calls) == 3
    assert [c.split()[-1] for c in calls] == ["tt", "ss", "ff"]


def test_cleanup_removes_source_dir(config, runner, pdk_tree, all_binaries_present):
    run_setup(config, runner, tools=make_six_tools(), os_release=UBUNTU_2204)
    assert not config.src_dir.exists()


def test_dry_run_changes_nothing(config, pdk_tree, all_binaries_present):
    runner = FakeRunner(dry_run=True)
    magicrc = pdk_tree / "magic" / "sky130A.magicrc"
    before = magicrc.read_text()

    run_setup(config, runner, tools=make_six_tools(), os_release=UBUNTU_2204)

    assert magicrc.read_text() == before
    assert not (config.home / ".spiceinit").exists()
    assert not (config.home / "iic-init.sh").exists()
    assert not config.src_dir.exists()
    assert any(c.startswith("git clone") for c in runner.commands)


def test_packages_phase_failure_aborts(config, pdk_tree):
    runner = FakeRunner(fail_on=["apt-get install -y docker-ce"], retries=2)
    with pytest.raises(SetupError) as exc:
        run_setup(config, runner, tools=make_six_tools(), os_release=UBUNTU_2204)
    assert exc.value.tool == "packages"
    assert not any(c.startswith("git clone") for c in runner.commands)


def test_undecodable_magicrc_does_not_stop_the_run(config, runner, pdk_tree, all_binaries_present):
    magicrc = pdk_tree / "magic" / "sky130A.magicrc"
    magicrc.write_bytes(b"# \xa9 SkyWater\ntech load sky130A\n")

    report = run_setup(config, runner, tools=make_six_tools(), keep_sources=True, os_release=UBUNTU_2204)

    assert report.failed == []
    assert magicrc.read_bytes().startswith(b"# \xa9 SkyWater\n")
    assert b"# Custom bindkeys for IIC" in magicrc.read_bytes()
    for name in SIX_TOOLS:
        assert runner.commands_for(name)


def test_failed_pdk_build_aborts_before_other_tools(config, all_binaries_present):
    config.openlane_dir.mkdir()
    (config.openlane_dir / "flow.tcl").write_text("")
    runner = FakeRunner(fail_on=["make pdk"])

    with pytest.raises(SetupError) as exc:
        run_setup(config, runner, os_release=UBUNTU_2204)

    assert exc.value.kind == "fatal_tool"
    assert exc.value.tool == "pdk"
    assert runner.commands_for("openlane") == ["git pull", "sudo -E make pull-openlane"]
    ran = {c[0] for c in runner.calls}
    assert ran == {"packages", "pdk-root", "openlane", "pdk"}
