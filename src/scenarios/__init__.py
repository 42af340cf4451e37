"""Scenario definitions and orchestration."""

import logging
import time
from typing import Any, Optional, Protocol, runtime_checkable

from config import DeployConfig
from reporting import DeploySummary, RunReport

logger = logging.getLogger(__name__)


@runtime_checkable
class Scenario(Protocol):
    """Protocol for scenario definitions.

    Class attributes:
        name: Scenario identifier (e.g., 'deploy')
        description: Human-readable description
        requires_cluster: If True, preflight checks run before execution (default: True)
        expected_runtime: Expected runtime in seconds for --list-scenarios display (default: None)
    """
    name: str
    description: str

    def get_phases(self, config: DeployConfig) -> list[tuple[str, Any, str]]:
        """Return list of (phase_name, action, description) tuples."""
        ...


class Orchestrator:
    """Runs a scenario's phases in order against one deployment config.

    Stops at the first failed phase unless the action allows continuing.
    Context updates from passed phases are shared with later phases and
    recorded in the run report.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: DeployConfig,
        skip_phases: Optional[list[str]] = None,
        timeout: Optional[int] = None,
        dry_run: bool = False
    ):
        self.scenario = scenario
        self.config = config
        self.skip_phases = skip_phases or []
        self.timeout = timeout  # Checked between phases
        self.dry_run = dry_run
        self.report = RunReport(
            scenario=scenario.name,
            summary=DeploySummary(flavor=config.flavor.value, operator_ns=config.operator_ns),
            report_dir=config.report_dir,
        )
        self.context: dict[str, Any] = {}

    def preview(self) -> bool:
        """Print the phases a run would execute. Returns True."""
        out = self.config.console
        print(f"Dry run of '{self.scenario.name}' ({self.config.flavor.value} operator "
              f"in {self.config.operator_ns})", file=out)
        print(f"Tree: {self.config.root_dir}", file=out)
        for i, (phase_name, action, description) in enumerate(self.scenario.get_phases(self.config), 1):
            mark = 'skip' if phase_name in self.skip_phases else type(action).__name__
            print(f"  {i}. {phase_name:<18} {description} [{mark}]", file=out)
        if self.timeout:
            print(f"Overall timeout: {self.timeout}s", file=out)
        print("No changes made.", file=out)
        return True

    def _run_phase(self, phase_name: str, action: Any, description: str) -> tuple[bool, bool]:
        """Run one phase. Returns (passed, keep_going)."""
        logger.info(f"Running phase: {phase_name} - {description}")
        try:
            result = action.run(self.config, self.context)
        except Exception as e:
            logger.exception(f"Phase {phase_name} raised exception")
            self.report.record(phase_name, description, 'failed', str(e))
            return False, False

        if result.success:
            logger.info(f"Phase {phase_name} passed: {result.message}")
            self.report.record(phase_name, description, 'passed', result.message, result.duration)
            self.context.update(result.context_updates or {})
            self.report.summary.update(result.context_updates)
            return True, True

        logger.error(f"Phase {phase_name} failed: {result.message}")
        self.report.record(phase_name, description, 'failed', result.message, result.duration)
        return False, result.continue_on_failure

    def run(self) -> bool:
        """Run all phases. Returns True if all passed."""
        if self.dry_run:
            return self.preview()

        logger.info(f"Starting scenario '{self.scenario.name}' for {self.config.name}")
        self.report.start()

        all_passed = True
        start_time = time.time()
        for phase_name, action, description in self.scenario.get_phases(self.config):
            if self.timeout:
                elapsed = time.time() - start_time
                if elapsed >= self.timeout:
                    logger.error(f"Scenario timeout ({self.timeout}s) exceeded after {elapsed:.1f}s")
                    self.report.record(phase_name, description, 'failed',
                                       f"Timeout exceeded ({elapsed:.1f}s >= {self.timeout}s)")
                    all_passed = False
                    break

            if phase_name in self.skip_phases:
                logger.info(f"Skipping phase: {phase_name}")
                self.report.record(phase_name, description, 'skipped')
                continue

            passed, keep_going = self._run_phase(phase_name, action, description)
            all_passed = all_passed and passed
            if not keep_going:
                break

        report_path = self.report.finish(all_passed)
        logger.info(f"Scenario completed in {time.time() - start_time:.1f}s, report: {report_path}")
        return all_passed


# Registry of available scenarios
_scenarios: dict[str, type[Scenario]] = {}


def register_scenario(cls: type[Scenario]) -> type[Scenario]:
    """Decorator to register a scenario class."""
    _scenarios[cls.name] = cls
    return cls


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in _scenarios:
        available = list(_scenarios.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return _scenarios[name]()


def list_scenarios() -> list[str]:
    """List available scenario names."""
    return sorted(_scenarios.keys())


# Import scenarios to trigger registration
from scenarios import deploy  # noqa: E402, F401
from scenarios import operator_setup  # noqa: E402, F401
