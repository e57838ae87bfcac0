"""Console output formatting utilities for osicsetup."""

from __future__ import annotations

import sys
from typing import Iterable, Optional

import click

from ..model import VerificationResult


OK_MARK = "[ OK ]"
FAILED_MARK = "[ FAILED ]"
SKIPPED_MARK = "[ SKIPPED ]"


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, color: Optional[bool] = None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            color: Force (True) or disable (False) ANSI colors; None = auto
        """
        self.debug = debug
        self.color = color

    def _style(self, text: str, fg: str) -> str:
        return click.style(text, fg=fg)

    def _echo(self, line: str) -> None:
        # click strips ANSI codes when stdout is not a terminal (color=None)
        click.echo(line, color=self.color)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n>>>> {title}")

    def print_run_started(
        self,
        pdk_root: str,
        pdk: str,
        tool_count: int,
        dry_run: bool = False,
    ) -> None:
        """Print run start information."""
        print("\nSETUP STARTED")
        print(f"PDK root: {pdk_root}")
        print(f"PDK: {pdk}")
        print(f"Tools: {tool_count}")
        if dry_run:
            print("Mode: dry-run (nothing will be changed)")
        print()

    def print_step(self, name: str, cmd: str, cwd: Optional[str] = None, dry_run: bool = False) -> None:
        """Print step start message."""
        if dry_run:
            where = f" (in {cwd})" if cwd else ""
            print(f"[dry-run] {cmd}{where}")
            return
        print(f"STEP: {name}")
        self.print_debug(f"$ {cmd}" + (f"  (cwd={cwd})" if cwd else ""))

    def print_action(self, message: str, dry_run: bool = False) -> None:
        """Print a filesystem action performed by osicsetup itself."""
        prefix = "[dry-run] " if dry_run else ""
        print(f"{prefix}{message}")

    def print_status(self, what: str, passed: bool) -> None:
        """Print a verification line, e.g. `Checking for git... [ OK ]`."""
        mark = self._style(OK_MARK, "green") if passed else self._style(FAILED_MARK, "red")
        self._echo(f"Checking for {what}... {mark}")

    def print_retry(self, what: str, attempt: int, attempts: int, delay: float, reason: str) -> None:
        """Print a retry notice for a network step."""
        print(f"RETRY: {what} (attempt {attempt}/{attempts} failed, waiting {delay:.0f}s)")
        self.print_debug(reason)

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Tool or phase name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split('\n')[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_results(self, results: Iterable[VerificationResult]) -> None:
        """Print final verification summary."""
        results = list(results)
        width = max([len(r.name) for r in results] + [4])
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for r in results:
            if r.detail == "skipped":
                mark = self._style(SKIPPED_MARK, "yellow")
            elif r.passed:
                mark = self._style(OK_MARK, "green")
            else:
                mark = self._style(FAILED_MARK, "red")
            line = f"  {r.name.ljust(width)}  {mark}"
            if r.detail and r.detail != "skipped" and not r.passed:
                line += f"  {r.detail}"
            self._echo(line)
        failed = sum(1 for r in results if not r.passed and r.detail != "skipped")
        print(f"\n{len(results) - failed}/{len(results)} checks passed")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
