"""Reusable deployment actions."""

from actions.flavor import PatchFlavorAction
from actions.operator import EnsureOperatorAction
from actions.secrets import DeploySecretsAction
from actions.kustomize import ApplyDependencyCrdsAction, ApplyKustomizeAction, ShowStatusAction

__all__ = [
    'PatchFlavorAction',
    'EnsureOperatorAction',
    'DeploySecretsAction',
    'ApplyDependencyCrdsAction',
    'ApplyKustomizeAction',
    'ShowStatusAction',
]
