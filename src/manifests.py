"""Structured edits of the local manifest tree.

Manifests are parsed, modified and re-serialized with PyYAML rather than
rewritten line by line. Only files that actually change are written back.
Note that re-serializing drops YAML comments in the rewritten files.
"""

import logging
import re
from pathlib import Path
from typing import Iterable

import yaml

from flavors import OperatorFlavor

logger = logging.getLogger(__name__)

# apiVersion of SpinnakerService and friends, either flavor
SPINNAKER_API_RE = re.compile(r'^spinnaker\.(armory\.)?io/v1alpha2$')

DEFAULT_SPINNAKER_NS = 'spinnaker'

_SKIP_DIRS = {'.git'}


class ManifestError(Exception):
    """A manifest could not be read or written."""


def load_documents(path: Path) -> list:
    """Load all YAML documents from a file."""
    try:
        with open(path, encoding='utf-8') as f:
            return list(yaml.safe_load_all(f))
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {path}: {e}") from e


def write_documents(path: Path, documents: list) -> None:
    """Write YAML documents back to a file, preserving key order."""
    docs = [d for d in documents if d is not None]
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump_all(docs, f, sort_keys=False, default_flow_style=False)


def find_manifest_files(root: Path, exclude: Iterable[Path] = ()) -> list[Path]:
    """All *.yml / *.yaml files under root, skipping excluded directories."""
    excluded = [Path(p).resolve() for p in exclude]
    found = []
    for path in sorted(root.rglob('*')):
        if path.suffix not in ('.yml', '.yaml') or not path.is_file():
            continue
        rel_parts = path.relative_to(root).parts
        if any(part in _SKIP_DIRS for part in rel_parts[:-1]):
            continue
        resolved = path.resolve()
        if any(resolved.is_relative_to(ex) for ex in excluded):
            continue
        found.append(path)
    return found


def _declares_api_version(path: Path, api_version: str) -> bool:
    try:
        docs = load_documents(path)
    except ManifestError:
        return False
    return any(isinstance(d, dict) and d.get('apiVersion') == api_version for d in docs)


def patch_flavor(root: Path, flavor: OperatorFlavor, exclude: Iterable[Path] = ()) -> list[Path]:
    """Rewrite spinnaker apiVersions in the tree to match the flavor.

    If spinnakerservice.yml already declares the target apiVersion the tree
    is assumed patched and nothing is scanned.

    Returns:
        Paths of files that were rewritten.
    """
    marker = root / 'spinnakerservice.yml'
    if marker.exists() and _declares_api_version(marker, flavor.api_version):
        logger.debug(f"{marker.name} already uses {flavor.api_version}")
        return []

    logger.debug(f"API_VERSION: {flavor.api_version}")
    changed = []
    for path in find_manifest_files(root, exclude):
        try:
            docs = load_documents(path)
        except ManifestError as e:
            logger.warning(f"Skipping {path}: {e}")
            continue

        modified = False
        for doc in docs:
            if not isinstance(doc, dict):
                continue
            current = doc.get('apiVersion')
            if isinstance(current, str) and SPINNAKER_API_RE.match(current) and current != flavor.api_version:
                doc['apiVersion'] = flavor.api_version
                modified = True

        if modified:
            logger.debug(f"Changing spinnaker apiVersion on file: {path}")
            write_documents(path, docs)
            changed.append(path)
    return changed


def set_role_binding_namespace(path: Path, namespace: str) -> bool:
    """Point ServiceAccount subjects of a (Cluster)RoleBinding at a namespace.

    Returns:
        True if the file was rewritten.
    """
    if not path.exists():
        raise ManifestError(f"Role binding manifest not found: {path}")

    docs = load_documents(path)
    modified = False
    found = False
    for doc in docs:
        if not isinstance(doc, dict) or not str(doc.get('kind') or '').endswith('RoleBinding'):
            continue
        for subject in doc.get('subjects') or []:
            if subject.get('kind') != 'ServiceAccount':
                continue
            found = True
            if subject.get('namespace') != namespace:
                subject['namespace'] = namespace
                modified = True

    if not found:
        raise ManifestError(f"No ServiceAccount subject in {path}")
    if modified:
        write_documents(path, docs)
    return modified


def _load_kustomization(path: Path) -> dict:
    if not path.exists():
        return {}
    docs = load_documents(path)
    return docs[0] if docs and isinstance(docs[0], dict) else {}


def kustomization_namespace(path: Path, default: str = DEFAULT_SPINNAKER_NS) -> str:
    """Top-level namespace of a kustomization, or the default."""
    return _load_kustomization(path).get('namespace') or default


def kustomization_has_resource(path: Path, resource: str) -> bool:
    """Whether a kustomization lists a resource (trailing slashes ignored)."""
    resources = _load_kustomization(path).get('resources') or []
    wanted = resource.rstrip('/')
    return any(isinstance(r, str) and r.rstrip('/') == wanted for r in resources)
