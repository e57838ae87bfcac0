import pytest

from osicsetup import catalog
from osicsetup.packages import (
    add_docker_repository,
    docker_repository_line,
    install_system_packages,
    remove_conflicting,
    verify_packages,
)
from osicsetup.runner import SetupError, StepFailure

from conftest import UBUNTU_2204, FakeRunner


def test_docker_repository_line():
    assert docker_repository_line("jammy", arch="amd64") == (
        "deb [arch=amd64 signed-by=/etc/apt/keyrings/docker.asc] "
        "https://download.docker.com/linux/ubuntu jammy stable"
    )


def test_docker_repository_registered_before_index_refresh(runner):
    add_docker_repository(runner, UBUNTU_2204)
    cmds = runner.commands
    tee = next(i for i, c in enumerate(cmds) if "sudo tee /etc/apt/sources.list.d/docker.list" in c)
    assert "jammy stable" in cmds[tee]
    assert "$(dpkg --print-architecture)" in cmds[tee]
    assert cmds[-1] == "sudo apt-get -qq update -y"
    assert tee < len(cmds) - 1


def test_missing_codename_is_an_error(runner):
    with pytest.raises(SetupError) as exc:
        add_docker_repository(runner, {})
    assert exc.value.kind == "unsupported_platform"
    assert runner.calls == []


def test_conflicting_packages_that_are_absent_are_tolerated():
    runner = FakeRunner(fail_on=["remove -y runc"])
    remove_conflicting(runner)
    assert len(runner.calls) == len(catalog.CONFLICTING_PACKAGES)


def test_install_phase_order_and_package_list(config, runner, all_binaries_present):
    results = install_system_packages(config, runner, packages=["git", "klayout"], os_release=UBUNTU_2204)

    cmds = runner.commands
    install = cmds.index("sudo apt-get install -y git klayout")
    docker_list = next(i for i, c in enumerate(cmds) if "docker.list" in c)
    assert docker_list < install
    assert cmds[-1] == 'sudo usermod -aG docker "$USER"'
    assert [r.name for r in results] == catalog.PACKAGE_PROBES
    assert all(r.passed for r in results)


def test_failed_install_is_fatal(config):
    runner = FakeRunner(fail_on=["apt-get install -y git"], retries=1)
    with pytest.raises(StepFailure):
        install_system_packages(config, runner, packages=["git"], os_release=UBUNTU_2204)


def test_verify_packages_reports_missing(monkeypatch):
    monkeypatch.setattr("osicsetup.probe.shutil.which", lambda name: None if name == "yosys" else f"/usr/bin/{name}")
    results = {r.name: r for r in verify_packages()}
    assert results["yosys"].passed is False
    assert results["git"].passed is True
