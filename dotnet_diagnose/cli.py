"""
CLI - Command-line interface for dotnet_diagnose.

Locates the .NET process on this host, collects trace/dump/stack/counter
artifacts one after another and ships each to the blob container named in
the target's environment.
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import Config, create_example_config
from .logging_utils import setup_logging, get_stage_logger
from .processes import ProcessRegistry
from .protocol.artifacts import ArtifactKind
from .protocol.errors import ConfigError, DiagnoseError, RunCancelled
from .runner import DiagnosticEngine, Teardown
from .ui import ConsoleUI


logger = get_stage_logger("main", "cli")

KIND_CHOICES = [k.value for k in ArtifactKind]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="dotnet-diagnose",
        description="Collect .NET diagnostics from a running process and upload them to blob storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    dotnet-diagnose
    dotnet-diagnose --pid 4242 --output-dir /tmp/diag

    # Shorter windows, no memory dump
    dotnet-diagnose --trace-duration 30 --counter-window 60 --skip dump

    # Machine-readable result
    dotnet-diagnose --summary-json /tmp/diag/summary.json

Environment Variables (read from the target process, not this shell):
    COMPUTERNAME                           Instance identifier used in artifact names
    DIAGNOSTICS_AZUREBLOBCONTAINERSASURL   Blob container SAS URL for uploads
        """,
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to a TOML config file (default: ./dotnet_diagnose.toml or ~/.config/dotnet_diagnose/config.toml)"
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write an example dotnet_diagnose.toml and exit"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    # ==================== Target ====================
    target_group = parser.add_argument_group('Target')

    target_group.add_argument(
        "-p", "--pid",
        type=int,
        help="Target process id (skip discovery)"
    )
    target_group.add_argument(
        "--on-multiple",
        choices=["first", "error"],
        help="What to do when several .NET processes match (default: first)"
    )
    target_group.add_argument(
        "--tools-dir",
        help="Directory holding dotnet-trace, dotnet-dump, dotnet-stack, dotnet-counters and azcopy (default: /tools)"
    )

    # ==================== Collection ====================
    collect_group = parser.add_argument_group('Collection')

    collect_group.add_argument(
        "--trace-duration",
        type=int,
        metavar="SECONDS",
        help="Network trace duration (default: 60)"
    )
    collect_group.add_argument(
        "--counter-window",
        type=int,
        metavar="SECONDS",
        help="How long counters are sampled (default: 300)"
    )
    collect_group.add_argument(
        "--settle-delay",
        type=float,
        metavar="SECONDS",
        help="Pause between a collection and its upload (default: 5)"
    )
    collect_group.add_argument(
        "--skip",
        action="append",
        choices=KIND_CHOICES,
        metavar="KIND",
        help=f"Skip a stage; repeatable ({', '.join(KIND_CHOICES)})"
    )
    collect_group.add_argument(
        "--max-attempts",
        type=int,
        help="Upload attempts per artifact (default: 5)"
    )

    # ==================== Output ====================
    output_group = parser.add_argument_group('Output')

    output_group.add_argument(
        "-o", "--output-dir",
        help="Directory for artifacts (default: current directory)"
    )
    output_group.add_argument(
        "--summary-json",
        metavar="PATH",
        help="Write the run summary as JSON"
    )
    output_group.add_argument(
        "--log-file",
        help="Also write the run log to this file"
    )
    output_group.add_argument(
        "--plain",
        action="store_true",
        help="Plain log lines instead of rich rendering"
    )
    output_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="No banner, panels or summary table"
    )
    output_group.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging"
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Config file + CLI overrides, validated."""
    config = Config.load(args.config)
    config.override_from_args(args)

    problems = config.validate()
    if problems:
        raise ConfigError("Invalid configuration: " + "; ".join(problems), problems)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    ui = ConsoleUI(quiet=args.quiet)

    if args.init_config:
        try:
            path = create_example_config()
        except FileExistsError as e:
            ui.print_error(str(e))
            return 1
        ui.print(f"[green]Created[/] {path}")
        return 0

    try:
        config = load_config(args)
    except ConfigError as e:
        ui.print_error(e.message)
        return e.exit_code

    setup_logging(
        plain=config.output.plain,
        verbose=config.output.verbose,
        log_file=config.output.log_file,
    )
    ui.quiet = config.output.quiet

    ui.print_banner(__version__)
    ui.print_config(config.summary())

    registry = ProcessRegistry()
    teardown = Teardown(registry, config=config.teardown, tool_paths=config.tools.all_paths())
    teardown.install()

    engine = DiagnosticEngine(config, registry=registry)
    engine.on_state_change(ui.print_state_change)

    exit_code = 0
    try:
        engine.run()
        ui.print_target(engine.target)
        ui.print_summary(engine.summary)

    except RunCancelled as e:
        logger.warning(f"Run cancelled: {e.signal_name or 'cancel requested'}")
        if not teardown.completed:
            teardown.run(e.signal_name)

    except DiagnoseError as e:
        ui.print_error(e.message)
        exit_code = e.exit_code

    finally:
        teardown.uninstall()
        if config.output.summary_json and engine.summary.target is not None:
            path = engine.save_summary(config.output.summary_json)
            logger.info(f"Run summary written to {path}")

    return exit_code


def run():
    """Console script wrapper: exit with main()'s status."""
    sys.exit(main())


if __name__ == "__main__":
    run()
