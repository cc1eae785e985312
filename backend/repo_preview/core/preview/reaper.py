# -*- coding: utf-8 -*-
"""
Background sweep stopping previews past their expiry label.

Off unless preview.reaper.enabled is set; without it expiresAt is advisory.
"""

import asyncio
import logging
from typing import List, Optional

from repo_preview.core.preview.orchestrator import PreviewOrchestrator

logger = logging.getLogger(__name__)


class PreviewReaper:
    """Periodically stops expired previews."""

    def __init__(self, orchestrator: PreviewOrchestrator, interval_seconds: float = 300):
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self) -> List[str]:
        """Stop expired previews and release vanished ones; returns their identifiers."""
        expired = await self.orchestrator.expired_previews()
        stopped = []
        for project_id in expired:
            try:
                await self.orchestrator.stop_preview(project_id)
                stopped.append(project_id)
                logger.info(f"Stopped expired preview: {project_id}")
            except Exception as e:
                logger.error(f"Failed to stop expired preview {project_id}: {e}")
        stopped.extend(await self.orchestrator.release_vanished_previews())
        if stopped:
            logger.info(f"Reaped {len(stopped)} expired previews")
        return stopped

    async def start(self):
        """Start the background sweep task."""
        async def sweep_loop():
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    await self.sweep()
                except Exception as e:
                    logger.error(f"Error in preview reaper: {e}")

        if self._task is None:
            self._task = asyncio.create_task(sweep_loop())
            logger.info(f"Started preview reaper (every {self.interval_seconds}s)")

    async def stop(self):
        """Stop the background sweep task."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Stopped preview reaper")
