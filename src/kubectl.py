"""Thin wrapper over the kubectl CLI.

All cluster access goes through this module so actions and the operator
reconciler can be tested against a fake. JSON output is parsed natively
instead of piping through jq.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from common import run_command

logger = logging.getLogger(__name__)


class KubectlError(Exception):
    """A kubectl invocation failed."""

    def __init__(self, message: str, output: str = ''):
        super().__init__(message)
        self.output = output

    def __str__(self):
        base = super().__str__()
        return f"{base}:\n{self.output.strip()}" if self.output.strip() else base


class Kubectl:
    """Runs kubectl commands against the current context."""

    def __init__(self, binary: str = 'kubectl', timeout: int = 300):
        self.binary = binary
        self.timeout = timeout

    def _run(self, args: list[str], namespace: Optional[str] = None,
             timeout: Optional[int] = None) -> tuple[int, str, str]:
        cmd = [self.binary]
        if namespace:
            cmd += ['-n', namespace]
        cmd += args
        return run_command(cmd, timeout=timeout or self.timeout)

    def _check(self, args: list[str], namespace: Optional[str] = None, what: str = '') -> str:
        rc, out, err = self._run(args, namespace=namespace)
        if rc != 0:
            raise KubectlError(f"{what or ' '.join(args)} failed (rc={rc})", err or out)
        return out

    def _get_json(self, args: list[str], namespace: Optional[str] = None) -> dict:
        out = self._check(['get'] + args + ['-o', 'json'], namespace=namespace)
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise KubectlError(f"Unparseable kubectl output for get {' '.join(args)}: {e}", out) from e

    # -- reads -------------------------------------------------------------

    def list_namespaces(self) -> tuple[bool, str]:
        """Check that the cluster answers. Returns (success, output)."""
        rc, out, err = self._run(['get', 'ns'], timeout=60)
        return rc == 0, out if rc == 0 else (err or out)

    def crd_names(self) -> list[str]:
        """Names of all CustomResourceDefinitions on the cluster."""
        data = self._get_json(['crd'])
        return [item.get('metadata', {}).get('name', '') for item in data.get('items', [])]

    def namespace_exists(self, namespace: str) -> bool:
        rc, _, _ = self._run(['get', 'ns', namespace], timeout=60)
        return rc == 0

    def pod_readiness(self, namespace: str, name_contains: str) -> str:
        """Ready/total container counts of pods whose name contains a string.

        Mirrors the READY column of `kubectl get pods`. Pods being deleted are
        ignored. Multiple matching pods are comma-joined, so a rollout in
        progress never equals a single-pod marker such as '2/2'.
        """
        data = self._get_json(['pods'], namespace=namespace)
        counts = []
        for pod in data.get('items', []):
            metadata = pod.get('metadata', {})
            if name_contains not in metadata.get('name', ''):
                continue
            if metadata.get('deletionTimestamp'):
                continue
            total = len(pod.get('spec', {}).get('containers', []))
            statuses = pod.get('status', {}).get('containerStatuses') or []
            ready = sum(1 for cs in statuses if cs.get('ready'))
            counts.append(f'{ready}/{total}')
        return ','.join(counts)

    def deployment_image(self, namespace: str, deployment: str,
                         container_contains: Optional[str] = None) -> Optional[str]:
        """Image of the first container matching name, or None."""
        data = self._get_json(['deployment', deployment], namespace=namespace)
        containers = data.get('spec', {}).get('template', {}).get('spec', {}).get('containers', [])
        match = container_contains or deployment
        for container in containers:
            if match in container.get('name', ''):
                return container.get('image')
        return None

    def get_table(self, resource: str, namespace: Optional[str] = None) -> tuple[bool, str]:
        """Human-readable `kubectl get` output. Returns (success, output)."""
        rc, out, err = self._run(['get', resource], namespace=namespace, timeout=60)
        return rc == 0, out if rc == 0 else (err or out)

    # -- writes ------------------------------------------------------------

    def create_namespace(self, namespace: str) -> None:
        self._check(['create', 'ns', namespace], what=f'create namespace {namespace}')

    def ensure_namespace(self, namespace: str) -> bool:
        """Create namespace if absent. Returns True if it was created."""
        if self.namespace_exists(namespace):
            logger.debug(f"Namespace {namespace} already exists")
            return False
        logger.info(f"Creating namespace {namespace}")
        self.create_namespace(namespace)
        return True

    def apply_file(self, path: Path, namespace: Optional[str] = None) -> str:
        """kubectl apply -f for a file or directory."""
        return self._check(['apply', '-f', str(path)], namespace=namespace, what=f'apply -f {path}')

    def apply_kustomize(self, path: Path, namespace: Optional[str] = None) -> str:
        """kubectl apply -k for a kustomize directory."""
        return self._check(['apply', '-k', str(path)], namespace=namespace, what=f'apply -k {path}')

    def delete(self, kind: str, name: str, namespace: Optional[str] = None) -> str:
        """Delete a named resource; absence is not an error."""
        return self._check(['delete', kind, name, '--ignore-not-found'],
                           namespace=namespace, what=f'delete {kind} {name}')
