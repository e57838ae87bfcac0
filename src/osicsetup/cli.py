# cli.py
from __future__ import annotations

import sys

import click

from .catalog import default_tools
from .config import EnvironmentConfig
from .git_facts.git import current_ref
from .orchestrator import run_setup
from .runner import CommandRunner, SetupError, StepFailure
from .tools import checkout_path, detect_state
from .ui.console import Console, get_console, set_console


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show commands, stack traces and build output)",
)
@click.pass_context
def cli(ctx, debug):
    """osicsetup: bootstrap the IIC open-source EDA environment."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


def _config_from_options(pdk_root, src_dir, script_dir, pdk) -> EnvironmentConfig:
    return EnvironmentConfig.from_env(
        pdk_root=pdk_root,
        src_dir=src_dir,
        script_dir=script_dir,
        pdk=pdk,
    )


@cli.command()
@click.option("--pdk-root", default=None, type=click.Path(file_okay=False), help="PDK install directory (default ~/pdk)")
@click.option("--pdk", default=None, help="PDK variant to use (default sky130A)")
@click.option("--src-dir", default=None, type=click.Path(file_okay=False), help="Scratch directory for tool sources (default ~/src)")
@click.option(
    "--script-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="Directory holding iic-spice-model-red.py and iic-magic-bindkeys (default: current directory)",
)
@click.option("--skip-tool", "skip_tools", multiple=True, help="Tool or phase to skip (repeatable)")
@click.option("--dry-run", is_flag=True, default=False, help="Print what would be done without changing anything")
@click.option("--keep-sources/--no-keep-sources", default=False, show_default=True, help="Keep the source directory after the run")
@click.option("--retries", default=3, show_default=True, type=click.IntRange(min=1), help="Attempts for network steps")
@click.pass_context
def run(ctx, pdk_root, pdk, src_dir, script_dir, skip_tools, dry_run, keep_sources, retries):
    """Install or update the whole toolchain."""
    console = get_console()
    config = _config_from_options(pdk_root, src_dir, script_dir, pdk)
    runner = CommandRunner(
        dry_run=dry_run,
        retries=retries,
        stream=console.debug,
        env=config.as_env(),
    )
    tools = default_tools()

    try:
        console.print_run_started(
            pdk_root=str(config.pdk_root),
            pdk=config.pdk,
            tool_count=len(tools),
            dry_run=dry_run,
        )
        report = run_setup(
            config,
            runner,
            tools=tools,
            skip=skip_tools,
            keep_sources=keep_sources,
        )
        console.print_results(report.results)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except SetupError as e:
        console.print_error(
            "Setup aborted",
            e.message,
            details=[f"{k}: {v}" for k, v in {"tool": e.tool, "step": e.step, **e.details}.items() if v],
        )
        sys.exit(1)
    except StepFailure as e:
        console.print_error(
            "Setup aborted",
            str(e),
            details=[line for line in (e.stderr or e.stdout).splitlines()[-20:]],
            suggestion=e.hint,
        )
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_info("\n>>>> All done. Please test the OpenLane install by running")
    console.print_info(">>>> make test")
    console.print_info(f"\nRemember to run `source {config.home / 'iic-init.sh'}` to initialize environment!")


@cli.command()
@click.option("--src-dir", default=None, type=click.Path(file_okay=False), help="Scratch directory for tool sources (default ~/src)")
def tools(src_dir):
    """List the tools osicsetup manages and their local state."""
    console = get_console()
    config = EnvironmentConfig.from_env(src_dir=src_dir)
    for spec in default_tools():
        state = detect_state(spec, config)
        line = f"  {spec.name:<14} {state.value:<14} {checkout_path(spec, config)}"
        if spec.source_kind == "git":
            ref = current_ref(checkout_path(spec, config))
            if ref:
                line += f"  @ {ref}"
        if spec.fatal:
            line += "  (required)"
        console.print_info(line)


if __name__ == "__main__":
    cli()
