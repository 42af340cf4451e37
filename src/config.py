"""Deployment configuration.

Configuration is resolved from the environment, then overridden by CLI flags:
- SPIN_FLAVOR: operator flavor, 'armory' or 'oss' (default: armory)
- OPERATOR_NS: namespace the operator lives in (default: spinnaker-operator)
- SPINNAKER_KUSTOMIZE_ROOT: kustomize tree to deploy (default: current directory)
- OPERATOR_READY_TIMEOUT: seconds to wait for operator pods (default: 600)
- OPERATOR_POLL_INTERVAL: seconds between readiness checks (default: 2)

The Spinnaker namespace itself is not configured here; it is read from
kustomization.yml at deploy time.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TextIO

from flavors import OperatorFlavor

DEFAULT_FLAVOR = 'armory'
DEFAULT_OPERATOR_NS = 'spinnaker-operator'
DEFAULT_READY_TIMEOUT = 600
DEFAULT_POLL_INTERVAL = 2
LOG_FILENAME = 'deploy_log.txt'


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class DeployConfig:
    """Resolved settings for one deployment run."""
    flavor: OperatorFlavor
    root_dir: Path
    operator_ns: str = DEFAULT_OPERATOR_NS
    ready_timeout: int = DEFAULT_READY_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    settle_delay: float = 5.0
    use_watch: bool = True
    json_output: bool = False
    log_file: Optional[Path] = None
    staging_dir: Optional[Path] = None
    report_dir: Optional[Path] = None
    name: str = field(default='', init=False)

    def __post_init__(self):
        if isinstance(self.root_dir, str):
            self.root_dir = Path(self.root_dir)
        self.root_dir = self.root_dir.resolve()
        if self.log_file is None:
            self.log_file = self.root_dir / LOG_FILENAME
        if self.staging_dir is None:
            self.staging_dir = self.root_dir / 'operator'
        if self.report_dir is None:
            self.report_dir = self.root_dir / 'reports'
        self.report_dir = Path(self.report_dir)
        if not self.operator_ns:
            raise ConfigError("Operator namespace must not be empty")
        if self.ready_timeout <= 0:
            raise ConfigError(f"Ready timeout must be positive, got {self.ready_timeout}")
        if self.poll_interval <= 0:
            raise ConfigError(f"Poll interval must be positive, got {self.poll_interval}")
        # Reports and phase logs identify a run by its tree and flavor
        self.name = f'{self.root_dir.name}:{self.flavor.value}'

    @property
    def kustomization_file(self) -> Path:
        return self.root_dir / 'kustomization.yml'

    @property
    def secrets_script(self) -> Path:
        return self.root_dir / 'secrets' / 'create-secrets.sh'

    @property
    def generated_dirs(self) -> list[Path]:
        """Directories this tool writes into; never treated as manifests."""
        return [self.staging_dir, self.report_dir]

    @property
    def console(self) -> TextIO:
        """Stream for human-readable output. Stdout is reserved for JSON in JSON mode."""
        return sys.stderr if self.json_output else sys.stdout

    @classmethod
    def from_env(
        cls,
        env: Optional[dict] = None,
        flavor: Optional[str] = None,
        operator_ns: Optional[str] = None,
        root_dir: Optional[Path] = None,
        ready_timeout: Optional[int] = None,
        **kwargs
    ) -> 'DeployConfig':
        """Build config from environment variables, CLI values take precedence."""
        env = os.environ if env is None else env

        flavor_name = flavor or env.get('SPIN_FLAVOR') or DEFAULT_FLAVOR
        try:
            resolved_flavor = OperatorFlavor.parse(flavor_name)
        except ValueError as e:
            raise ConfigError(str(e)) from None

        root = root_dir or env.get('SPINNAKER_KUSTOMIZE_ROOT') or Path.cwd()
        root = Path(root)
        if not root.is_dir():
            raise ConfigError(f"Kustomize root not found: {root}")

        if ready_timeout is None:
            ready_timeout = _int_env(env, 'OPERATOR_READY_TIMEOUT', DEFAULT_READY_TIMEOUT)
        if 'poll_interval' not in kwargs:
            kwargs['poll_interval'] = _int_env(env, 'OPERATOR_POLL_INTERVAL', DEFAULT_POLL_INTERVAL)

        return cls(
            flavor=resolved_flavor,
            root_dir=root,
            operator_ns=operator_ns or env.get('OPERATOR_NS') or DEFAULT_OPERATOR_NS,
            ready_timeout=ready_timeout,
            **kwargs
        )


def _int_env(env, key: str, default: int) -> int:
    """Read an integer environment variable."""
    value = env.get(key)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{value}'") from None
