from __future__ import annotations

import logging

from ..types import BuildResult
from ..workspace import Workspace

logger = logging.getLogger(__name__)


class BuildVerifier:
    async def verify(self, workspace: Workspace) -> BuildResult:
        raw = await workspace.build()
        result = BuildResult(
            succeeded=raw.exit_code == 0,
            exit_code=raw.exit_code,
            stdout=raw.stdout,
            stderr=raw.stderr,
        )
        if result.succeeded:
            logger.info("Build passed (%s)", workspace.toolchain.name)
        else:
            logger.warning("Build failed (%s) with exit_code=%d", workspace.toolchain.name, result.exit_code)
        return result
