"""Kustomize deployment and status actions."""

import logging
import time
from dataclasses import dataclass, field

from actions.secrets import resolve_spinnaker_namespace
from common import ActionResult, command_exists, run_command
from config import DeployConfig
from kubectl import Kubectl, KubectlError
from manifests import ManifestError, kustomization_has_resource

logger = logging.getLogger(__name__)

PROMETHEUS_RESOURCE = 'infrastructure/prometheus-grafana'


@dataclass
class ApplyDependencyCrdsAction:
    """Apply CRDs of bundled infrastructure the kustomization references.

    CRDs must exist before `apply -k` can create resources of their kinds.
    """
    name: str
    resource: str = PROMETHEUS_RESOURCE
    crd_file: str = 'crd.yml'
    kubectl: Kubectl = field(default_factory=Kubectl)

    def run(self, config: DeployConfig, _context: dict) -> ActionResult:
        """Apply dependency CRDs if referenced."""
        start = time.time()

        try:
            referenced = kustomization_has_resource(config.kustomization_file, self.resource)
        except ManifestError as e:
            return ActionResult(
                success=False,
                message=f"Cannot read {config.kustomization_file.name}: {e}",
                duration=time.time() - start
            )

        if not referenced:
            return ActionResult(
                success=True,
                message=f"{self.resource} not referenced - skipped",
                duration=time.time() - start
            )

        crd_path = config.root_dir / self.resource / self.crd_file
        logger.info(f"[{self.name}] Deploying {self.resource} crds...")
        try:
            self.kubectl.apply_file(crd_path)
        except KubectlError as e:
            return ActionResult(
                success=False,
                message=f"Error deploying {self.resource} crds: {e}",
                duration=time.time() - start
            )

        return ActionResult(
            success=True,
            message=f"Applied {crd_path.relative_to(config.root_dir)}",
            duration=time.time() - start
        )


@dataclass
class ApplyKustomizeAction:
    """Deploy the kustomize tree with `kubectl apply -k`."""
    name: str
    kubectl: Kubectl = field(default_factory=Kubectl)

    def run(self, config: DeployConfig, context: dict) -> ActionResult:
        """Apply the tree into the Spinnaker namespace."""
        start = time.time()

        try:
            spin_ns = resolve_spinnaker_namespace(config, context)
        except ManifestError as e:
            return ActionResult(
                success=False,
                message=f"Cannot read {config.kustomization_file.name}: {e}",
                duration=time.time() - start
            )

        logger.info(f"[{self.name}] Deploying spinnaker...")
        try:
            output = self.kubectl.apply_kustomize(config.root_dir, namespace=spin_ns)
        except KubectlError as e:
            return ActionResult(
                success=False,
                message=f"Error deploying spinnaker: {e}",
                duration=time.time() - start
            )

        applied = len([line for line in output.splitlines() if line.strip()])
        # Give the operator a moment to pick up the SpinnakerService
        if config.settle_delay:
            time.sleep(config.settle_delay)

        return ActionResult(
            success=True,
            message=f"Applied {applied} resource(s) to {spin_ns}",
            duration=time.time() - start,
            context_updates={'spin_ns': spin_ns}
        )


@dataclass
class ShowStatusAction:
    """Show SpinnakerService and pod status.

    Runs `watch` interactively when available and enabled, otherwise prints
    a single snapshot. Status problems never fail the deployment.
    """
    name: str
    kubectl: Kubectl = field(default_factory=Kubectl)

    def run(self, config: DeployConfig, context: dict) -> ActionResult:
        """Display deployment status."""
        start = time.time()

        try:
            spin_ns = resolve_spinnaker_namespace(config, context)
        except ManifestError as e:
            return ActionResult(
                success=True,
                message=f"Status skipped: {e}",
                duration=time.time() - start
            )

        if config.use_watch and command_exists('watch'):
            kubectl = self.kubectl.binary
            watched = f"{kubectl} -n {spin_ns} get spinsvc && echo '' && {kubectl} -n {spin_ns} get pods"
            try:
                run_command(['watch', watched], capture=False, timeout=24 * 3600)
            except KeyboardInterrupt:
                print('', file=config.console)
            return ActionResult(
                success=True,
                message="Watch ended",
                duration=time.time() - start
            )

        if config.use_watch:
            logger.info('=== Consider installing "watch" command to monitor installation progress')

        for resource in ('spinsvc', 'pods'):
            ok, output = self.kubectl.get_table(resource, namespace=spin_ns)
            if ok:
                print(output.rstrip(), file=config.console)
                print('', file=config.console)
            else:
                logger.warning(f"[{self.name}] Unable to get {resource}: {output.strip()}")

        return ActionResult(
            success=True,
            message=f"Status shown for {spin_ns}",
            duration=time.time() - start
        )
