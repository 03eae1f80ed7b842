"""Sequential bulk alt-text generation with progress and cooperative stop.

One job at a time, one request in flight at a time. The work list is
snapshotted once at start; a stop request takes effect at the next item
boundary and never aborts the request that is already running.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import httpx

from alttext.models import BulkJob, BulkLogEntry, BulkState, ImageRef
from alttext.models.bulk import LogLevel
from alttext.services.alt_text_api import AltTextAPIClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BulkJob], None]
LogCallback = Callable[[BulkLogEntry], None]

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "skip": logging.INFO,
    "error": logging.WARNING,
}


class BulkRunInProgressError(RuntimeError):
    """Raised when a run is started while another one is still running."""


class BulkRunner:
    """Drives the bulk endpoints for one operator session."""

    DEFAULT_DELAY = 0.5

    def __init__(
        self,
        api: AltTextAPIClient,
        *,
        delay: float = DEFAULT_DELAY,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
    ) -> None:
        self._api = api
        self._delay = delay
        self._on_progress = on_progress
        self._on_log = on_log
        self.job: BulkJob = BulkJob()

    @property
    def is_running(self) -> bool:
        return self.job.state is BulkState.RUNNING

    def request_stop(self) -> None:
        if not self.is_running or self.job.stop_requested:
            return
        self.job.request_stop()
        self._log(self.job, "Stop requested. Will stop after current image completes.", "info")

    async def start(self) -> BulkJob:
        if self.is_running:
            raise BulkRunInProgressError("A bulk run is already in progress")

        job = BulkJob(state=BulkState.RUNNING)
        self.job = job
        try:
            await self._run(job)
        finally:
            if not job.is_terminal:
                job.state = BulkState.STOPPED
                logger.warning("Bulk run aborted after %d of %d images", job.processed, job.total)
        return job

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(self, job: BulkJob) -> None:
        self._log(job, "Fetching images without alt text...", "info")

        try:
            images = await self._api.fetch_images_without_alt()
        except Exception as exc:  # pylint: disable=broad-except
            self._log(job, f"Error fetching images: {exc}", "error")
            job.state = BulkState.STOPPED
            return

        job.items = list(images)
        if not job.items:
            self._log(job, "No images found without alt text. All images already have alt text!", "success")
            job.state = BulkState.COMPLETED
            return

        self._log(job, f"Found {job.total} images without alt text. Starting generation...", "info")
        self._notify(job)
        await self._process(job)

    async def _process(self, job: BulkJob) -> None:
        for index, image in enumerate(job.items):
            if job.stop_requested:
                self._log(job, "Processing stopped by user.", "info")
                break

            job.cursor = index
            await self._process_one(job, image)
            job.processed += 1
            job.cursor = index + 1
            self._notify(job)

            # Courtesy delay between requests, whatever the outcome.
            await asyncio.sleep(self._delay)

        if job.stop_requested:
            job.state = BulkState.STOPPED
            return

        job.state = BulkState.COMPLETED
        self._log(job, f"Bulk processing complete! Processed {job.total} images.", "success")

    async def _process_one(self, job: BulkJob, image: ImageRef) -> None:
        try:
            response = await self._api.generate_single(image.id)
        except httpx.HTTPError as exc:
            job.stats.failed += 1
            self._log(job, f'Network error for "{image.label}" (ID: {image.id}): {exc}', "error")
            return

        if response.success:
            job.stats.success += 1
            self._log(job, f'Generated alt text for "{image.label}" (ID: {image.id})', "success")
        else:
            job.stats.failed += 1
            message = response.message or "Unknown error"
            self._log(
                job,
                f'Failed to generate alt text for "{image.label}" (ID: {image.id}): {message}',
                "error",
            )

    def _notify(self, job: BulkJob) -> None:
        if self._on_progress is not None:
            self._on_progress(job)

    def _log(self, job: BulkJob, message: str, level: LogLevel) -> None:
        entry = BulkLogEntry(level=level, message=message)
        job.log.append(entry)
        logger.log(_LOG_LEVELS[level], message)
        if self._on_log is not None:
            self._on_log(entry)
