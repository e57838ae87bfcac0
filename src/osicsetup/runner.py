# runner.py
from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .model import Step
from .ui.console import get_console


@dataclass
class SetupError(Exception):
    """
    Structured setup error with enough context for:
      - clean CLI output
      - deciding whether the run can continue
    """
    kind: str
    tool: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"tool={self.tool}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


TOOL_HINTS = {
    "git": "Install git (sudo apt-get install -y git).",
    "sudo": "Run as a user with sudo rights.",
    "apt-get": "This setup only supports Debian/Ubuntu hosts.",
    "make": "Install build-essential (sudo apt-get install -y build-essential).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
}


@dataclass
class StepFailure(Exception):
    tool: str
    step: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        return f"[{self.tool}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"

    @property
    def hint(self) -> Optional[str]:
        # 127 = command not found in sh
        if self.exit_code != 127:
            return None
        first = self.cmd.split()[0] if self.cmd.split() else ""
        if first == "sudo" and len(self.cmd.split()) > 1:
            first = self.cmd.split()[1]
        return TOOL_HINTS.get(first)


# ----------------------------------------------------------------------
# Retry
# ----------------------------------------------------------------------

RETRY_START_SEC = 2.0
RETRY_MAX_SEC = 60.0


def backoff_delays(attempts: int, start: float = RETRY_START_SEC, cap: float = RETRY_MAX_SEC) -> List[float]:
    """Delays slept between attempts: start, 2*start, 4*start, ... capped."""
    return [min(cap, start * (2 ** i)) for i in range(max(0, attempts - 1))]


def with_retry(
    fn: Callable[[], None],
    *,
    attempts: int,
    what: str,
    sleep: Callable[[float], None] = time.sleep,
    retry_on: tuple = (StepFailure,),
) -> None:
    """Call fn() up to `attempts` times, sleeping with exponential backoff in between."""
    console = get_console()
    delays = backoff_delays(attempts)
    for attempt in range(1, max(1, attempts) + 1):
        try:
            fn()
            return
        except retry_on as e:
            if attempt >= attempts:
                raise
            delay = delays[attempt - 1]
            console.print_retry(what, attempt, attempts, delay, str(e))
            sleep(delay)


# ----------------------------------------------------------------------
# Execution
# ----------------------------------------------------------------------

class CommandRunner:
    """
    Runs steps through `sh -c`.

    dry_run: print each command instead of executing it.
    retries: attempts for steps marked `network=True`.
    stream:  let subprocess output go to the terminal instead of capturing it.
    """

    def __init__(
        self,
        *,
        dry_run: bool = False,
        retries: int = 3,
        stream: bool = False,
        env: Optional[Dict[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.dry_run = dry_run
        self.retries = max(1, retries)
        self.stream = stream
        self.env = dict(env or {})
        self._sleep = sleep

    def run(self, tool: str, step: Step, *, cwd: str | Path | None = None, env: Optional[Dict[str, str]] = None) -> None:
        workdir = step.cwd or cwd
        if step.network:
            with_retry(
                lambda: self._run_once(tool, step, workdir, env),
                attempts=self.retries,
                what=f"{tool}: {step.name}",
                sleep=self._sleep,
            )
        else:
            self._run_once(tool, step, workdir, env)

    def _run_once(self, tool: str, step: Step, cwd: str | Path | None, env: Optional[Dict[str, str]]) -> None:
        console = get_console()
        console.print_step(step.name, step.run, cwd=str(cwd) if cwd else None, dry_run=self.dry_run)
        if self.dry_run:
            return

        if cwd is not None and not Path(cwd).exists():
            raise SetupError(
                kind="missing_directory",
                tool=tool,
                step=step.name,
                message=f"working directory not found: {cwd}",
            )

        full_env = os.environ.copy()
        full_env.update(self.env)
        full_env.update(env or {})

        proc = subprocess.run(
            step.run,
            shell=True,
            cwd=str(cwd) if cwd else None,
            env=full_env,
            text=True,
            capture_output=not self.stream,
        )

        if proc.returncode != 0:
            raise StepFailure(
                tool=tool,
                step=step.name,
                cmd=step.run,
                exit_code=proc.returncode,
                stdout=(proc.stdout or "")[-4000:],
                stderr=(proc.stderr or "")[-4000:],
            )
