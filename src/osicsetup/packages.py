# packages.py
from __future__ import annotations

import shlex
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from . import catalog
from .config import EnvironmentConfig
from .dsl import sh
from .hostinfo import read_os_release, release_codename
from .model import VerificationResult
from .probe import probe
from .runner import CommandRunner, SetupError, StepFailure
from .ui.console import get_console

SOURCES_LIST = Path("/etc/apt/sources.list")
NAME = "packages"


def _quote_all(names: Sequence[str]) -> str:
    return " ".join(shlex.quote(n) for n in names)


def enable_source_repositories(runner: CommandRunner, sources_list: Path = SOURCES_LIST) -> None:
    """Uncomment deb-src entries; `apt build-dep xschem` needs them."""
    if not sources_list.exists():
        get_console().print_debug(f"{sources_list} not found, leaving source repositories alone")
        return
    runner.run(NAME, sh("Enable deb-src", f"sudo sed -i 's/# deb-src/deb-src/g' {shlex.quote(str(sources_list))}"))


def refresh_index(runner: CommandRunner) -> None:
    runner.run(NAME, sh("Update package index", "sudo apt-get -qq update -y", network=True))


def upgrade(runner: CommandRunner) -> None:
    runner.run(NAME, sh("Upgrade packages", "sudo apt-get -qq upgrade -y", network=True))


def remove_conflicting(runner: CommandRunner, packages: Sequence[str] = catalog.CONFLICTING_PACKAGES) -> None:
    """Remove distro container packages that clash with docker-ce. Missing ones are fine."""
    console = get_console()
    for pkg in packages:
        try:
            runner.run(NAME, sh(f"Remove {pkg}", f"sudo apt-get remove -y {shlex.quote(pkg)}"))
        except StepFailure as e:
            console.print_debug(f"{pkg} not removed (exit={e.exit_code}), continuing")


def docker_repository_line(codename: str, arch: str = "$(dpkg --print-architecture)") -> str:
    return (
        f"deb [arch={arch} signed-by={catalog.DOCKER_KEYRING}] "
        f"{catalog.DOCKER_REPO_URL} {codename} stable"
    )


def add_docker_repository(runner: CommandRunner, os_release: Dict[str, str]) -> None:
    codename = release_codename(os_release)
    if not codename:
        raise SetupError(
            kind="unsupported_platform",
            tool=NAME,
            step="Set up Docker repository",
            message="could not determine the OS codename from /etc/os-release",
            details={"hint": "This setup only supports Ubuntu hosts."},
        )

    keyring = shlex.quote(catalog.DOCKER_KEYRING)
    runner.run(NAME, sh(
        "Install Docker prerequisites",
        f"sudo apt-get install -y {_quote_all(catalog.DOCKER_PREREQUISITES)}",
        network=True,
    ))
    runner.run(NAME, sh("Create keyring directory", "sudo install -m 0755 -d /etc/apt/keyrings"))
    runner.run(NAME, sh(
        "Add Docker GPG key",
        f"sudo curl -fsSL {shlex.quote(catalog.DOCKER_GPG_URL)} -o {keyring}",
        network=True,
    ))
    runner.run(NAME, sh("Make Docker key readable", f"sudo chmod a+r {keyring}"))
    runner.run(NAME, sh(
        "Set up Docker repository",
        f'echo "{docker_repository_line(codename)}" | sudo tee {shlex.quote(catalog.DOCKER_SOURCES_LIST)} > /dev/null',
    ))
    refresh_index(runner)


def install_packages(runner: CommandRunner, packages: Sequence[str]) -> None:
    if not packages:
        return
    runner.run(NAME, sh("Install packages", f"sudo apt-get install -y {_quote_all(packages)}", network=True))


def add_user_to_docker_group(runner: CommandRunner) -> None:
    runner.run(NAME, sh("Add user to docker group", 'sudo usermod -aG docker "$USER"'))


def verify_packages(binaries: Sequence[str] = catalog.PACKAGE_PROBES) -> List[VerificationResult]:
    console = get_console()
    results: List[VerificationResult] = []
    for name in binaries:
        passed = probe(name)
        console.print_status(name, passed)
        results.append(VerificationResult(name=name, passed=passed, detail="" if passed else "not on PATH"))
    return results


def install_system_packages(
    config: EnvironmentConfig,
    runner: CommandRunner,
    *,
    packages: Sequence[str] = catalog.APT_PACKAGES,
    os_release: Optional[Dict[str, str]] = None,
) -> List[VerificationResult]:
    """
    The whole apt phase. Any failing apt call raises (fail-fast); the
    post-install probes are reported but never raise.
    """
    console = get_console()
    info = os_release if os_release is not None else read_os_release()

    console.print_header("Update packages")
    enable_source_repositories(runner)
    refresh_index(runner)
    upgrade(runner)

    console.print_header("Uninstalling old docker versions")
    remove_conflicting(runner)

    console.print_header("Setting up Docker repository")
    add_docker_repository(runner, info)

    console.print_header("Installing required (and useful) packages via APT")
    install_packages(runner, packages)

    console.print_header("Verifying installations")
    results = verify_packages()

    add_user_to_docker_group(runner)
    return results
