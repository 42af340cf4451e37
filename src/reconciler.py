"""Spinnaker operator reconciliation.

Ensures the cluster runs the operator of the requested flavor:
1. Detect the flavor's CRD; remove the other flavor's CRD if present
2. Check operator pod readiness
3. If the CRD is missing or pods are not ready, download the operator
   package, apply its CRDs and cluster manifests, and wait for readiness
4. Read back the deployed operator image

Reconciling an already healthy install performs no cluster writes.

Only one reconciliation may run at a time per staging directory: the
directory is wiped at the start of every install.
"""

import logging
import shutil
import sys
import tarfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TextIO

import requests

from flavors import CRD_PATTERN, OPERATOR_NAME, OPERATOR_READY, OperatorFlavor
from kubectl import Kubectl, KubectlError
from manifests import ManifestError, set_role_binding_namespace

logger = logging.getLogger(__name__)

CRDS_DIR = Path('deploy') / 'crds'
CLUSTER_DIR = Path('deploy') / 'operator' / 'cluster'
ROLE_BINDING = CLUSTER_DIR / 'role_binding.yaml'


class ReconcileError(Exception):
    """Operator installation failed. The cluster may need manual cleanup."""

    def __init__(self, message: str, output: str = ''):
        super().__init__(message)
        self.output = output


class ReconcileTimeout(ReconcileError):
    """Operator pods did not become ready in time."""


class ReconcileCancelled(ReconcileError):
    """Waiting for the operator was cancelled."""


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation."""
    image: str
    installed: bool = False
    removed_crd: Optional[str] = None
    status: str = OPERATOR_READY


def fetch_package(url: str, dest: Path, timeout: int = 120) -> None:
    """Download a gzipped tarball and extract it into dest."""
    try:
        with requests.get(url, stream=True, timeout=timeout, allow_redirects=True) as resp:
            resp.raise_for_status()
            resp.raw.decode_content = True
            with tarfile.open(fileobj=resp.raw, mode='r|gz') as archive:
                archive.extractall(dest, filter='data')
    except requests.exceptions.RequestException as e:
        raise ReconcileError(f"Failed to download operator package from {url}: {e}") from e
    except (tarfile.TarError, OSError) as e:
        raise ReconcileError(f"Failed to extract operator package from {url}: {e}") from e


def wait_for_ready(
    check: Callable[[], str],
    expected: str = OPERATOR_READY,
    interval: float = 2,
    timeout: float = 600,
    stop: Optional[threading.Event] = None,
    progress: Optional[TextIO] = None
) -> str:
    """Poll check() until it returns expected.

    Prints a dot to progress between attempts. Raises ReconcileTimeout when
    timeout seconds pass, ReconcileCancelled when stop is set.
    """
    deadline = time.time() + timeout
    status = check()
    while status != expected:
        if time.time() >= deadline:
            raise ReconcileTimeout(
                f"Operator not ready after {timeout}s (last status: '{status or 'no pods'}')"
            )
        if progress is not None:
            progress.write('.')
            progress.flush()
        if stop is not None:
            if stop.wait(interval):
                raise ReconcileCancelled("Cancelled while waiting for operator readiness")
        else:
            time.sleep(interval)
        status = check()
    return status


class OperatorReconciler:
    """Converges the cluster onto one operator flavor."""

    def __init__(
        self,
        kubectl: Kubectl,
        staging_dir: Path,
        poll_interval: float = 2,
        ready_timeout: float = 600,
        fetcher: Optional[Callable[[str, Path], None]] = None,
        progress: Optional[TextIO] = None
    ):
        self.kubectl = kubectl
        self.staging_dir = Path(staging_dir)
        self.poll_interval = poll_interval
        self.ready_timeout = ready_timeout
        self.fetcher = fetcher or fetch_package
        self.progress = progress if progress is not None else sys.stdout

    def reconcile(self, flavor: OperatorFlavor, namespace: str,
                  stop: Optional[threading.Event] = None) -> ReconcileResult:
        """Make sure the flavor's operator is installed and ready in namespace."""
        logger.info(f"Resolved operator namespace: {namespace}")

        crd_ready, removed = self._assert_crd(flavor, namespace)
        status = self._operator_status(namespace)

        installed = False
        if not crd_ready or status != OPERATOR_READY:
            logger.info(f"Deploying {flavor.value} operator from url {flavor.package_url}")
            self._install(flavor, namespace)
            status = wait_for_ready(
                lambda: self._operator_status(namespace),
                interval=self.poll_interval,
                timeout=self.ready_timeout,
                stop=stop,
                progress=self.progress,
            )
            self.progress.write('Done\n')
            self.progress.flush()
            installed = True
        else:
            logger.debug(f"Operator already installed and ready ({status})")

        image = self._operator_image(namespace)
        logger.info(f"Operator version: {image}")
        return ReconcileResult(image=image, installed=installed, removed_crd=removed, status=status)

    def _assert_crd(self, flavor: OperatorFlavor, namespace: str) -> tuple[bool, Optional[str]]:
        """Check for the flavor's CRD, uninstalling a foreign flavor if found.

        Returns:
            (crd_ready, removed_crd_name)
        """
        try:
            names = self.kubectl.crd_names()
        except KubectlError as e:
            logger.warning(f"Unable to list CRDs, assuming operator is absent: {e}")
            return False, None

        if flavor.crd in names:
            return True, None

        existing = next((n for n in names if CRD_PATTERN in n), None)
        if not existing:
            return False, None

        logger.info(
            f'Expected operator flavor "{flavor.value}" but detected a different one, '
            f'uninstalling the other operator.'
        )
        removals = [
            ('crd', existing, None),
            ('crd', flavor.other.accounts_crd, None),
            ('deployment', OPERATOR_NAME, namespace),
        ]
        for kind, name, ns in removals:
            try:
                self.kubectl.delete(kind, name, namespace=ns)
            except KubectlError as e:
                logger.warning(f"Failed to delete {kind} {name}: {e}")
        return False, existing

    def _operator_status(self, namespace: str) -> str:
        try:
            return self.kubectl.pod_readiness(namespace, OPERATOR_NAME)
        except KubectlError as e:
            logger.debug(f"Unable to read operator pods: {e}")
            return ''

    def _install(self, flavor: OperatorFlavor, namespace: str) -> None:
        staging = self.staging_dir
        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir(parents=True)
        except OSError as e:
            raise ReconcileError(f"Unable to reset staging directory {staging}: {e}") from e

        self.fetcher(flavor.package_url, staging)

        try:
            self.kubectl.apply_file(staging / CRDS_DIR)
            self.kubectl.ensure_namespace(namespace)
            set_role_binding_namespace(staging / ROLE_BINDING, namespace)
            self.kubectl.apply_file(staging / CLUSTER_DIR, namespace=namespace)
        except KubectlError as e:
            raise ReconcileError(f"Operator install failed: {e.args[0]}", e.output) from e
        except ManifestError as e:
            raise ReconcileError(f"Operator package is malformed: {e}") from e

    def _operator_image(self, namespace: str) -> str:
        try:
            image = self.kubectl.deployment_image(namespace, OPERATOR_NAME)
        except KubectlError as e:
            raise ReconcileError(f"Unable to read operator deployment: {e.args[0]}", e.output) from e
        if not image:
            raise ReconcileError(f"No {OPERATOR_NAME} container in deployment {namespace}/{OPERATOR_NAME}")
        return image
