"""Full Spinnaker deployment scenario.

Patches the manifest flavor, ensures the operator, provisions secrets and
applies the kustomize tree, then shows status.
"""

from actions import (
    ApplyDependencyCrdsAction,
    ApplyKustomizeAction,
    DeploySecretsAction,
    EnsureOperatorAction,
    PatchFlavorAction,
    ShowStatusAction,
)
from config import DeployConfig
from scenarios import register_scenario


@register_scenario
class SpinnakerDeploy:
    """Deploy Spinnaker with the operator and kustomize."""

    name = 'deploy'
    description = 'Install operator, deploy secrets and apply kustomize tree'
    expected_runtime = 180

    def get_phases(self, config: DeployConfig) -> list[tuple[str, object, str]]:
        """Return phases for a full deployment."""
        return [
            ('patch_flavor', PatchFlavorAction(
                name='patch-flavor',
            ), f'Set manifests to {config.flavor.value} flavor'),

            ('ensure_operator', EnsureOperatorAction(
                name='ensure-operator',
            ), f'Ensure {config.flavor.value} operator in {config.operator_ns}'),

            ('deploy_secrets', DeploySecretsAction(
                name='deploy-secrets',
            ), 'Create spinnaker namespace and secrets'),

            ('dependency_crds', ApplyDependencyCrdsAction(
                name='dependency-crds',
            ), 'Apply prometheus CRDs if referenced'),

            ('deploy_spinnaker', ApplyKustomizeAction(
                name='deploy-spinnaker',
            ), 'kubectl apply -k'),

            ('status', ShowStatusAction(
                name='status',
            ), 'Show SpinnakerService and pods'),
        ]
