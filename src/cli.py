#!/usr/bin/env python3
"""CLI entry point for spinnaker-deploy.

Runs a deployment scenario against the current kube context:
- deploy: full Spinnaker deployment (default)
- operator: ensure the operator only
- flavor: patch manifest apiVersions only

Examples:
    spinnaker-deploy
    SPIN_FLAVOR=oss spinnaker-deploy deploy --root ./kustomize-spinnaker
    spinnaker-deploy operator --operator-ns spinnaker-operator --ready-timeout 300
    spinnaker-deploy --preflight
"""

import argparse
import json
import logging
import signal
import sys
import threading
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

from config import ConfigError, DeployConfig
from readiness import format_preflight_results, run_preflight_checks
from scenarios import Orchestrator, get_scenario, list_scenarios

logger = logging.getLogger(__name__)

CONSOLE_FORMAT = '[%(levelname)-5.5s] %(message)s'
FILE_FORMAT = '%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s'

RED = '\033[0;31m'
GREEN = '\033[0;32m'
YELLOW = '\033[0;33m'
NC = '\033[0m'


class ColorFormatter(logging.Formatter):
    """Console formatter that colors the level tag."""

    COLORS = {
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED,
    }

    def format(self, record):
        message = super().format(record)
        color = self.COLORS.get(record.levelno)
        if not color:
            return message
        tag = f'[{record.levelname:<5.5}]'
        return message.replace(tag, f'{color}{tag}{NC}', 1)


def configure_logging(log_file: Optional[Path] = None, verbose: bool = False,
                      stream=None, color: Optional[bool] = None) -> None:
    """Console handler (colored on a tty) plus a full-detail log file.

    The log file is truncated at the start of every run and receives DEBUG
    output, including captured subprocess output.
    """
    stream = stream or sys.stdout
    if color is None:
        color = hasattr(stream, 'isatty') and stream.isatty()

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler(stream)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(ColorFormatter(CONSOLE_FORMAT) if color else logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        root_logger.addHandler(file_handler)
        logger.debug(f"Run started {datetime.now().isoformat()}")

    # Keep HTTP client chatter out of the log file
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def get_version() -> str:
    """Installed package version, or 'dev' from a checkout."""
    try:
        return version('spinnaker-deploy')
    except PackageNotFoundError:
        return 'dev'


def build_parser(available_scenarios: list[str]) -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='spinnaker-deploy',
        description='Deploy Spinnaker with the Spinnaker operator and kustomize'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'spinnaker-deploy {get_version()}'
    )
    parser.add_argument(
        'scenario',
        nargs='?',
        default='deploy',
        choices=available_scenarios,
        help='Scenario to run (default: deploy)'
    )
    parser.add_argument(
        '--flavor', '-f',
        help='Operator flavor: armory or oss (env: SPIN_FLAVOR, default: armory)'
    )
    parser.add_argument(
        '--operator-ns',
        help='Operator namespace (env: OPERATOR_NS, default: spinnaker-operator)'
    )
    parser.add_argument(
        '--root',
        type=Path,
        help='Kustomize tree to deploy (env: SPINNAKER_KUSTOMIZE_ROOT, default: current directory)'
    )
    parser.add_argument(
        '--ready-timeout',
        type=int,
        help='Seconds to wait for operator pods (env: OPERATOR_READY_TIMEOUT, default: 600)'
    )
    parser.add_argument(
        '--report-dir', '-r',
        type=Path,
        help='Directory for run reports (default: <root>/reports)'
    )
    parser.add_argument(
        '--skip', '-s',
        action='append',
        default=[],
        help='Phases to skip (can be repeated)'
    )
    parser.add_argument(
        '--timeout', '-t',
        type=int,
        help='Overall scenario timeout in seconds. Checked between phases (does not interrupt running phases).'
    )
    parser.add_argument(
        '--no-watch',
        action='store_true',
        help='Print status once instead of running watch'
    )
    parser.add_argument(
        '--list-scenarios',
        action='store_true',
        help='List available scenarios and exit'
    )
    parser.add_argument(
        '--list-phases',
        action='store_true',
        help='List phases for the selected scenario and exit'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be executed without running actions'
    )
    parser.add_argument(
        '--preflight',
        action='store_true',
        help='Run preflight checks only (no scenario execution)'
    )
    parser.add_argument(
        '--skip-preflight',
        action='store_true',
        help='Skip preflight checks before scenario execution'
    )
    parser.add_argument(
        '--check-download',
        action='store_true',
        help='Also check the operator package URL during preflight'
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs go to stderr)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser


def _print_scenarios(available_scenarios: list[str]) -> None:
    print("Available scenarios:")
    for name in available_scenarios:
        scenario = get_scenario(name)
        runtime = getattr(scenario, 'expected_runtime', None)
        if runtime:
            runtime_str = f"~{runtime // 60}m" if runtime >= 60 else f"~{runtime}s"
            print(f"  {name:12} {runtime_str:>6}  {scenario.description}")
        else:
            print(f"  {name:12}         {scenario.description}")


def _install_stop_handler(stop: threading.Event) -> None:
    """Set stop on SIGTERM so a waiting reconciliation exits cleanly."""
    def _handler(_signum, _frame):
        logger.error("Received SIGTERM, stopping")
        stop.set()

    try:
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Not the main thread (embedded use); rely on caller to set stop
        pass


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    available_scenarios = list_scenarios()
    args = build_parser(available_scenarios).parse_args(argv)

    if args.list_scenarios:
        _print_scenarios(available_scenarios)
        return 0

    # Stdout carries only the JSON document in JSON mode
    stream = sys.stderr if args.json_output else sys.stdout

    try:
        config = DeployConfig.from_env(
            flavor=args.flavor,
            operator_ns=args.operator_ns,
            root_dir=args.root,
            ready_timeout=args.ready_timeout,
            use_watch=not args.no_watch and not args.json_output,
            json_output=args.json_output,
            report_dir=args.report_dir,
        )
    except ConfigError as e:
        configure_logging(verbose=args.verbose, stream=stream)
        logger.error(str(e))
        return 1

    write_log = not (args.dry_run or args.list_phases)
    configure_logging(config.log_file if write_log else None, verbose=args.verbose, stream=stream)
    logger.info(f"Spinnaker flavor: {config.flavor.value}")

    scenario = get_scenario(args.scenario)
    phase_names = [name for name, _action, _desc in scenario.get_phases(config)]
    patch_manifests = 'patch_flavor' in phase_names and 'patch_flavor' not in args.skip

    if args.preflight:
        success, results = run_preflight_checks(config, check_download=args.check_download,
                                               patch_manifests=patch_manifests)
        print(format_preflight_results(config, results), file=stream)
        return 0 if success else 1

    if args.list_phases:
        print(f"Phases for scenario '{args.scenario}':")
        for name, _action, desc in scenario.get_phases(config):
            print(f"  {name}: {desc}")
        return 0

    requires_cluster = getattr(scenario, 'requires_cluster', True)
    if requires_cluster and not args.skip_preflight and not args.dry_run:
        success, results = run_preflight_checks(config, check_download=args.check_download,
                                               patch_manifests=patch_manifests)
        if not success:
            print(format_preflight_results(config, results), file=stream)
            logger.error("Pre-flight validation failed. Use --skip-preflight to bypass these checks")
            return 1
        logger.info("Pre-flight validation passed")

    orchestrator = Orchestrator(
        scenario=scenario,
        config=config,
        skip_phases=args.skip,
        timeout=args.timeout,
        dry_run=args.dry_run
    )

    stop = threading.Event()
    orchestrator.context['_stop'] = stop
    _install_stop_handler(stop)

    try:
        success = orchestrator.run()
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 1

    if args.json_output:
        print(json.dumps(orchestrator.report.to_dict(), indent=2))

    if not success:
        logger.error(f"Deployment failed. Full log: {config.log_file}")
    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
