"""Secret provisioning action."""

import logging
import time
from dataclasses import dataclass, field

from common import ActionResult, run_command
from config import DeployConfig
from kubectl import Kubectl, KubectlError
from manifests import ManifestError, kustomization_namespace

logger = logging.getLogger(__name__)


def resolve_spinnaker_namespace(config: DeployConfig, context: dict) -> str:
    """Spinnaker namespace from context, else from kustomization.yml."""
    if spin_ns := context.get('spin_ns'):
        return spin_ns
    return kustomization_namespace(config.kustomization_file)


@dataclass
class DeploySecretsAction:
    """Ensure the Spinnaker namespace exists and run the secrets script."""
    name: str
    kubectl: Kubectl = field(default_factory=Kubectl)
    timeout: int = 300

    def run(self, config: DeployConfig, context: dict) -> ActionResult:
        """Create namespace and secrets."""
        start = time.time()

        try:
            spin_ns = resolve_spinnaker_namespace(config, context)
        except ManifestError as e:
            return ActionResult(
                success=False,
                message=f"Cannot read {config.kustomization_file.name}: {e}",
                duration=time.time() - start
            )
        logger.info(f"[{self.name}] Resolved spinnaker namespace: {spin_ns}")

        try:
            self.kubectl.ensure_namespace(spin_ns)
        except KubectlError as e:
            return ActionResult(
                success=False,
                message=f"Failed to create namespace {spin_ns}: {e}",
                duration=time.time() - start
            )

        script = config.secrets_script
        if not script.exists():
            return ActionResult(
                success=False,
                message=f"Secrets script not found: {script}",
                duration=time.time() - start
            )

        logger.info(f"[{self.name}] Deploying secrets...")
        rc, out, err = run_command([str(script)], cwd=config.root_dir, timeout=self.timeout)
        if rc != 0:
            return ActionResult(
                success=False,
                message=f"Secrets script failed (rc={rc}): {(err or out).strip()}",
                duration=time.time() - start
            )

        return ActionResult(
            success=True,
            message=f"Secrets deployed to {spin_ns}",
            duration=time.time() - start,
            context_updates={'spin_ns': spin_ns}
        )
