"""Shared pytest fixtures for spinnaker-deploy tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from kubectl import KubectlError  # noqa: E402

ROLE_BINDING_YAML = """\
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: spinnaker-operator-binding
subjects:
- kind: ServiceAccount
  name: spinnaker-operator
  namespace: default   # edit if you want the operator to live somewhere besides here
roleRef:
  kind: ClusterRole
  name: spinnaker-operator-role
  apiGroup: rbac.authorization.k8s.io
"""


class FakeKubectl:
    """In-memory stand-in for kubectl.Kubectl.

    Records every call in `calls` as (method, args) tuples. `readiness` is
    consumed one value per pod_readiness call; the last value repeats.
    Methods named in `failures` raise KubectlError.
    """

    MUTATING = {'create_namespace', 'apply_file', 'apply_kustomize', 'delete'}

    def __init__(self, crds=None, namespaces=None, readiness=None,
                 image='armory/spinnaker-operator:1.3.0', failures=None):
        self.binary = 'kubectl'
        self.crds = list(crds or [])
        self.namespaces = set(namespaces or [])
        self.readiness = list(readiness or [''])
        self.image = image
        self.failures = set(failures or [])
        self.calls = []

    def _call(self, method, *args):
        self.calls.append((method, args))
        if method in self.failures:
            raise KubectlError(f"{method} failed (rc=1)", f"error from {method}")

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] in self.MUTATING]

    def called(self, method):
        return [args for name, args in self.calls if name == method]

    def list_namespaces(self):
        self._call('list_namespaces')
        return True, 'NAME STATUS AGE\ndefault Active 1d\n'

    def crd_names(self):
        self._call('crd_names')
        return list(self.crds)

    def namespace_exists(self, namespace):
        self._call('namespace_exists', namespace)
        return namespace in self.namespaces

    def pod_readiness(self, namespace, name_contains):
        self._call('pod_readiness', namespace, name_contains)
        if len(self.readiness) > 1:
            return self.readiness.pop(0)
        return self.readiness[0]

    def deployment_image(self, namespace, deployment, container_contains=None):
        self._call('deployment_image', namespace, deployment)
        return self.image

    def get_table(self, resource, namespace=None):
        self._call('get_table', resource, namespace)
        return True, f'NAME\n{resource}-1\n'

    def create_namespace(self, namespace):
        self._call('create_namespace', namespace)
        self.namespaces.add(namespace)

    def ensure_namespace(self, namespace):
        if self.namespace_exists(namespace):
            return False
        self.create_namespace(namespace)
        return True

    def apply_file(self, path, namespace=None):
        self._call('apply_file', Path(path), namespace)
        return 'applied\n'

    def apply_kustomize(self, path, namespace=None):
        self._call('apply_kustomize', Path(path), namespace)
        return 'service/spin-deck created\nspinnakerservice.spinnaker.armory.io/spinnaker created\n'

    def delete(self, kind, name, namespace=None):
        self._call('delete', kind, name, namespace)
        if kind == 'crd' and name in self.crds:
            self.crds.remove(name)
        return ''


def write_operator_package(_url, dest):
    """Fetcher replacement that lays out an operator manifests.tgz tree."""
    dest = Path(dest)
    (dest / 'deploy' / 'crds').mkdir(parents=True)
    (dest / 'deploy' / 'crds' / 'spinnakerservice.yaml').write_text('kind: CustomResourceDefinition\n')
    cluster = dest / 'deploy' / 'operator' / 'cluster'
    cluster.mkdir(parents=True)
    (cluster / 'role_binding.yaml').write_text(ROLE_BINDING_YAML)
    (cluster / 'deployment.yaml').write_text('kind: Deployment\n')


@pytest.fixture
def operator_package():
    """Fetcher that writes a fake operator package."""
    return write_operator_package


@pytest.fixture
def kustomize_root(tmp_path):
    """Minimal kustomize-spinnaker tree.

    Creates:
    - kustomization.yml (namespace spinnaker, prometheus resource)
    - spinnakerservice.yml (armory apiVersion)
    - patches/ with one armory and one unrelated manifest
    - infrastructure/prometheus-grafana/crd.yml
    - secrets/create-secrets.sh
    """
    (tmp_path / 'kustomization.yml').write_text("""\
apiVersion: kustomize.config.k8s.io/v1beta1
kind: Kustomization
namespace: spinnaker
resources:
  - spinnakerservice.yml
  - infrastructure/prometheus-grafana
patchesStrategicMerge:
  - patches/profiles.yml
""")

    (tmp_path / 'spinnakerservice.yml').write_text("""\
apiVersion: spinnaker.armory.io/v1alpha2
kind: SpinnakerService
metadata:
  name: spinnaker
spec:
  spinnakerConfig:
    config:
      version: 2.27.1
""")

    (tmp_path / 'patches').mkdir()
    (tmp_path / 'patches' / 'profiles.yml').write_text("""\
apiVersion: spinnaker.armory.io/v1alpha2
kind: SpinnakerService
metadata:
  name: spinnaker
spec:
  spinnakerConfig:
    profiles:
      deck:
        settings-local.js: ''
---
apiVersion: spinnaker.armory.io/v1alpha2
kind: SpinnakerAccount
metadata:
  name: kube-account
""")
    (tmp_path / 'patches' / 'service.yaml').write_text("""\
apiVersion: v1
kind: Service
metadata:
  name: spin-deck
""")

    prom = tmp_path / 'infrastructure' / 'prometheus-grafana'
    prom.mkdir(parents=True)
    (prom / 'crd.yml').write_text('apiVersion: apiextensions.k8s.io/v1\nkind: CustomResourceDefinition\n')

    (tmp_path / 'secrets').mkdir()
    script = tmp_path / 'secrets' / 'create-secrets.sh'
    script.write_text('#!/bin/sh\necho "secrets created"\n')
    script.chmod(0o755)

    return tmp_path


@pytest.fixture
def deploy_config(kustomize_root):
    """DeployConfig for the fixture tree with fast polling."""
    from config import DeployConfig
    from flavors import OperatorFlavor
    return DeployConfig(
        flavor=OperatorFlavor.ARMORY,
        root_dir=kustomize_root,
        poll_interval=0.01,
        ready_timeout=5,
        settle_delay=0,
        use_watch=False,
    )
