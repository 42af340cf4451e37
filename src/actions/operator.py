"""Operator reconciliation action."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from common import ActionResult
from config import DeployConfig
from kubectl import Kubectl
from reconciler import OperatorReconciler, ReconcileError

logger = logging.getLogger(__name__)


@dataclass
class EnsureOperatorAction:
    """Install the configured operator flavor if missing or unhealthy."""
    name: str
    kubectl: Kubectl = field(default_factory=Kubectl)
    stop: Optional[threading.Event] = None

    def run(self, config: DeployConfig, context: dict) -> ActionResult:
        """Reconcile the operator and report its image."""
        start = time.time()
        stop = self.stop or context.get('_stop')

        reconciler = OperatorReconciler(
            self.kubectl,
            staging_dir=config.staging_dir,
            poll_interval=config.poll_interval,
            ready_timeout=config.ready_timeout,
            progress=config.console,
        )
        try:
            result = reconciler.reconcile(config.flavor, config.operator_ns, stop=stop)
        except ReconcileError as e:
            message = str(e)
            if e.output:
                message = f"{message}\n{e.output.strip()}"
            return ActionResult(
                success=False,
                message=message,
                duration=time.time() - start
            )

        verb = 'Installed' if result.installed else 'Verified'
        return ActionResult(
            success=True,
            message=f"{verb} {config.flavor.value} operator ({result.image})",
            duration=time.time() - start,
            context_updates={
                'operator_image': result.image,
                'operator_installed': result.installed,
                'removed_crd': result.removed_crd,
            }
        )
