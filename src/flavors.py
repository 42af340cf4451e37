"""Spinnaker operator flavors.

Two mutually exclusive operator distributions exist:
- armory: Armory's commercial operator (spinnaker.armory.io API group)
- oss: the open-source operator (spinnaker.io API group)

Only one may be installed on a cluster at a time.
"""

from enum import Enum

# Substring shared by both flavors' SpinnakerService CRD names
CRD_PATTERN = 'spinnakerservices.spinnaker'

OPERATOR_NAME = 'spinnaker-operator'

# Operator pod runs the operator and halyard containers
OPERATOR_READY = '2/2'


class OperatorFlavor(Enum):
    """Operator flavor with its fixed CRD, package and API version."""

    ARMORY = 'armory'
    OSS = 'oss'

    @property
    def api_group(self) -> str:
        return 'spinnaker.armory.io' if self is OperatorFlavor.ARMORY else 'spinnaker.io'

    @property
    def crd(self) -> str:
        return f'spinnakerservices.{self.api_group}'

    @property
    def accounts_crd(self) -> str:
        return f'spinnakeraccounts.{self.api_group}'

    @property
    def api_version(self) -> str:
        return f'{self.api_group}/v1alpha2'

    @property
    def package_url(self) -> str:
        org = 'armory-io' if self is OperatorFlavor.ARMORY else 'armory'
        return f'https://github.com/{org}/spinnaker-operator/releases/latest/download/manifests.tgz'

    @property
    def other(self) -> 'OperatorFlavor':
        return OperatorFlavor.OSS if self is OperatorFlavor.ARMORY else OperatorFlavor.ARMORY

    @classmethod
    def parse(cls, value: str) -> 'OperatorFlavor':
        """Parse a flavor name (case-insensitive)."""
        try:
            return cls((value or '').strip().lower())
        except ValueError:
            valid = ', '.join(f.value for f in cls)
            raise ValueError(f"Invalid spinnaker flavor: {value}. Valid values: {valid}") from None
