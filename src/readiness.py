"""Pre-flight readiness checks for deployments.

Validates prerequisites before any cluster changes are made:
- Required and optional tools on PATH
- Cluster reachability (kubectl can list namespaces)
- Manifests patched to the flavor, then the kustomize tree builds cleanly
  (when kustomize is installed)
- Operator package URL is reachable (optional)
"""

import logging
from typing import Optional

import requests

from common import command_exists, run_command
from config import DeployConfig
from kubectl import Kubectl
from manifests import patch_flavor

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ['kubectl']
OPTIONAL_TOOLS = {
    'kustomize': 'kustomize build check skipped',
    'watch': 'status will be printed once instead of watched',
}


def validate_tools() -> tuple[list[str], list[str]]:
    """Check tools on PATH.

    Returns:
        (passed, failed) message lists. Missing optional tools are reported
        as passed with a note.
    """
    passed, failed = [], []
    for tool in REQUIRED_TOOLS:
        if command_exists(tool):
            passed.append(f"{tool} installed")
        else:
            failed.append(f"'{tool}' is not installed.")
    for tool, note in OPTIONAL_TOOLS.items():
        if command_exists(tool):
            passed.append(f"{tool} installed")
        else:
            passed.append(f"{tool} not installed ({note})")
    return passed, failed


def validate_cluster_access(kubectl: Kubectl) -> tuple[bool, str]:
    """Check the current kube context answers.

    Returns:
        (success, message) tuple
    """
    ok, output = kubectl.list_namespaces()
    if ok:
        return True, "Cluster reachable (namespaces listed)"
    return False, f"Unable to list namespaces of the kubernetes cluster:\n{output.strip()}"


def validate_flavor_patch(config: DeployConfig) -> tuple[bool, str]:
    """Rewrite manifest apiVersions for the configured flavor.

    Returns:
        (success, message) tuple
    """
    try:
        changed = patch_flavor(config.root_dir, config.flavor, exclude=config.generated_dirs)
    except OSError as e:
        return False, f"Failed to patch manifests: {e}"
    if changed:
        return True, f"Patched {len(changed)} file(s) to {config.flavor.api_version}"
    return True, f"Manifests use {config.flavor.api_version}"


def validate_kustomize_build(config: DeployConfig, timeout: int = 120) -> tuple[bool, str]:
    """Run `kustomize build` on the tree if kustomize is installed.

    Returns:
        (success, message) tuple
    """
    if not command_exists('kustomize'):
        return True, "kustomize not installed, build check skipped"
    rc, out, err = run_command(['kustomize', 'build', str(config.root_dir)],
                               cwd=config.root_dir, timeout=timeout)
    if rc != 0:
        return False, f"Kustomize build returned an error:\n{(err or out).strip()}"
    return True, "kustomize build succeeded"


def validate_package_source(url: str, timeout: float = 10.0) -> tuple[bool, str]:
    """Check the operator package URL answers without downloading it.

    Args:
        url: Operator manifests.tgz URL
        timeout: Request timeout in seconds

    Returns:
        (success, message) tuple
    """
    try:
        resp = requests.head(url, allow_redirects=True, timeout=timeout)
        if resp.status_code == 200:
            return True, f"Operator package reachable: {url}"
        return False, f"Unexpected response for {url}: {resp.status_code}"
    except requests.exceptions.ConnectionError as e:
        return False, f"Cannot connect to {url}: {e}"
    except requests.exceptions.Timeout:
        return False, f"Timeout connecting to {url}"
    except Exception as e:
        return False, f"Error checking {url}: {e}"


def run_preflight_checks(config: DeployConfig,
                         kubectl: Optional[Kubectl] = None,
                         check_download: bool = False,
                         patch_manifests: bool = False) -> tuple[bool, dict]:
    """Run all pre-flight checks.

    Args:
        config: Deployment configuration
        kubectl: Cluster client (default: kubectl on PATH)
        check_download: Also probe the operator package URL
        patch_manifests: Rewrite apiVersions for the flavor before the build
            check, so the tree is validated as it will be applied

    Returns:
        (success, results) tuple where results maps category to
        {'passed': [...], 'failed': [...]}
    """
    kubectl = kubectl or Kubectl()
    results: dict[str, dict[str, list[str]]] = {
        'tools': {'passed': [], 'failed': []},
        'cluster': {'passed': [], 'failed': []},
        'manifests': {'passed': [], 'failed': []},
        'operator': {'passed': [], 'failed': []},
    }

    passed, failed = validate_tools()
    results['tools']['passed'].extend(passed)
    results['tools']['failed'].extend(failed)

    # Cluster check needs kubectl
    if not failed:
        ok, message = validate_cluster_access(kubectl)
        results['cluster']['passed' if ok else 'failed'].append(message)

    if config.kustomization_file.exists():
        results['manifests']['passed'].append(f"{config.kustomization_file.name} found")
        # The build must see the apiVersions that will be applied
        if patch_manifests:
            ok, message = validate_flavor_patch(config)
            results['manifests']['passed' if ok else 'failed'].append(message)
    else:
        results['manifests']['failed'].append(
            f"{config.kustomization_file} not found\n"
            f"  Run from a kustomize tree or pass --root"
        )
    ok, message = validate_kustomize_build(config)
    results['manifests']['passed' if ok else 'failed'].append(message)

    results['operator']['passed'].append(f"Spinnaker flavor: {config.flavor.value}")
    if check_download:
        ok, message = validate_package_source(config.flavor.package_url)
        results['operator']['passed' if ok else 'failed'].append(message)

    success = all(not cat['failed'] for cat in results.values())
    return success, results


def format_preflight_results(config: DeployConfig, results: dict) -> str:
    """Format preflight check results for display."""
    lines = [f"\nPreflight checks for '{config.root_dir}':\n"]

    category_names = {
        'tools': 'Tools',
        'cluster': 'Cluster',
        'manifests': 'Manifests',
        'operator': 'Operator',
    }

    for key, name in category_names.items():
        category = results.get(key, {'passed': [], 'failed': []})
        if category['passed'] or category['failed']:
            lines.append(f"{name}:")
            for item in category['passed']:
                lines.append(f"✓ {item}")
            for item in category['failed']:
                first_line, *rest = item.split('\n')
                lines.append(f"✗ {first_line}")
                for line in rest:
                    lines.append(f"  {line}")
            lines.append("")

    if all(not cat['failed'] for cat in results.values()):
        lines.append("All checks passed. Ready to deploy.")
    else:
        lines.append("Some checks failed. Fix issues before deploying.")

    return '\n'.join(lines)
