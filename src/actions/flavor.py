"""Flavor patch action."""

import logging
import time
from dataclasses import dataclass

from common import ActionResult
from config import DeployConfig
from manifests import patch_flavor

logger = logging.getLogger(__name__)


@dataclass
class PatchFlavorAction:
    """Rewrite spinnaker apiVersions in the kustomize tree for the flavor."""
    name: str

    def run(self, config: DeployConfig, _context: dict) -> ActionResult:
        """Patch manifests in place."""
        start = time.time()

        logger.info(f"[{self.name}] Checking manifests for {config.flavor.api_version}...")
        try:
            changed = patch_flavor(config.root_dir, config.flavor, exclude=config.generated_dirs)
        except OSError as e:
            return ActionResult(
                success=False,
                message=f"Failed to patch manifests: {e}",
                duration=time.time() - start
            )

        if not changed:
            return ActionResult(
                success=True,
                message=f"Manifests already use {config.flavor.api_version}",
                duration=time.time() - start
            )

        logger.info(f"[{self.name}] Changed spinnaker flavor in {len(changed)} file(s)")
        return ActionResult(
            success=True,
            message=f"Patched {len(changed)} file(s) to {config.flavor.api_version}",
            duration=time.time() - start,
            context_updates={'patched_files': [str(p.relative_to(config.root_dir)) for p in changed]}
        )
