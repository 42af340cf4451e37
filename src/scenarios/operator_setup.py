"""Operator-only scenarios."""

from actions import EnsureOperatorAction, PatchFlavorAction
from config import DeployConfig
from scenarios import register_scenario


@register_scenario
class OperatorSetup:
    """Install or verify the operator without deploying Spinnaker."""

    name = 'operator'
    description = 'Ensure the configured operator flavor is installed and ready'
    expected_runtime = 60

    def get_phases(self, config: DeployConfig) -> list[tuple[str, object, str]]:
        """Return operator reconciliation phase."""
        return [
            ('ensure_operator', EnsureOperatorAction(
                name='ensure-operator',
            ), f'Ensure {config.flavor.value} operator in {config.operator_ns}'),
        ]


@register_scenario
class FlavorPatch:
    """Rewrite manifests for a flavor without touching the cluster."""

    name = 'flavor'
    description = 'Patch spinnaker apiVersions in the kustomize tree'
    requires_cluster = False
    expected_runtime = 1

    def get_phases(self, config: DeployConfig) -> list[tuple[str, object, str]]:
        """Return flavor patch phase."""
        return [
            ('patch_flavor', PatchFlavorAction(
                name='patch-flavor',
            ), f'Set manifests to {config.flavor.value} flavor'),
        ]
