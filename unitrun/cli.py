"""CLI entry point for the unitrun test runner."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from unitrun.bus import SinkMessageBus
from unitrun.config import (
    CONFIG_FILE_NAME,
    ConfigurationError,
    RunnerConfig,
    build_bus,
    build_options,
    load_runner_config,
)
from unitrun.discovery import discover
from unitrun.models.summary import RunSummary
from unitrun.reporting import (
    LoggingReporter,
    ResultCollector,
    format_output,
    log_results_summary,
)
from unitrun.runners.assembly_runner import run_assembly

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE_ERROR = 2


async def resolve_config(config_path: Path | None, **overrides: object) -> RunnerConfig:
    """Load the configuration file, if any, and apply CLI overrides.

    Without an explicit path, ``unitrun.yaml`` in the working directory is
    used when present.
    """
    if config_path is None and Path(CONFIG_FILE_NAME).is_file():
        config_path = Path(CONFIG_FILE_NAME)

    config = await load_runner_config(config_path) if config_path else RunnerConfig()
    return config.with_overrides(**overrides)


async def run(
    modules: Sequence[str],
    config_path: Path | None = None,
    assembly_name: str = "unitrun",
    **overrides: object,
) -> int:
    """Discover and run tests, and return the exit code."""
    log = logging.getLogger("unitrun")

    try:
        config = await resolve_config(config_path, **overrides)
    except (ConfigurationError, FileNotFoundError) as e:
        log.error("Configuration error: %s", e)
        return EXIT_USAGE_ERROR

    logging.getLogger().setLevel(config.log_level)

    try:
        test_assembly, test_cases = discover(modules, assembly_name)
    except ImportError as e:
        log.error("Could not import test module: %s", e)
        return EXIT_USAGE_ERROR

    if not test_cases:
        log.info("No tests discovered")
        print(json.dumps(format_output([], RunSummary()), indent=2))
        return EXIT_SUCCESS

    results = ResultCollector()
    reporter = LoggingReporter(log=log, show_diagnostics=config.diagnostic_messages)
    bus = build_bus(config, SinkMessageBus(sinks=(reporter, results)))

    summary = await run_assembly(
        test_assembly, test_cases, bus=bus, options=build_options(config)
    )

    log_results_summary(log, results.outcomes, summary)
    output = format_output(results.outcomes, summary, results.cleanup_failures)
    print(json.dumps(output, indent=2))

    if summary.failed or results.cleanup_failures:
        return EXIT_FAILURE
    return EXIT_SUCCESS


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run unit tests from Python modules")
    parser.add_argument(
        "modules",
        nargs="+",
        help="Dotted names of the test modules to run",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to the runner configuration (default: ./{CONFIG_FILE_NAME})",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Directory prepended to the import path (default: current directory)",
    )
    parser.add_argument(
        "--assembly-name",
        default="unitrun",
        help="Display name of the test assembly",
    )
    parser.add_argument(
        "--stop-on-fail",
        action="store_true",
        default=None,
        help="Cancel the run after the first failed test",
    )
    parser.add_argument(
        "--diagnostics",
        dest="diagnostic_messages",
        action="store_true",
        default=None,
        help="Show engine diagnostic messages",
    )
    parser.add_argument(
        "--case-orderer",
        choices=("discovery", "display-name"),
        help="Order of test cases within a class",
    )
    parser.add_argument(
        "--collection-orderer",
        choices=("discovery", "name"),
        help="Order of test collections within the assembly",
    )
    parser.add_argument(
        "--constructor-policy",
        choices=("parameterless", "sole"),
        help="Which test class constructors are accepted",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    sys.path.insert(0, str(args.root.resolve()))

    exit_code = asyncio.run(
        run(
            modules=args.modules,
            config_path=args.config,
            assembly_name=args.assembly_name,
            stop_on_fail=args.stop_on_fail,
            diagnostic_messages=args.diagnostic_messages,
            case_orderer=args.case_orderer,
            collection_orderer=args.collection_orderer,
            constructor_policy=args.constructor_policy,
            log_level=args.log_level,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
