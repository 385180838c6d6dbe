"""
Sequential batch driver.

Each image goes through metadata extraction, remote analysis and record building before
the next one starts, so progress is monotonic and rows come out in input order. A failed
image is reported and skipped; it never aborts the batch.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from loguru import logger

from vision_batch.errors import ValidationError
from vision_batch.export import DEFAULT_REPORT_NAME, export_csv
from vision_batch.gate import DEFAULT_MAX_FILE_SIZE_MB, GateResult, accept
from vision_batch.metadata import extract_metadata
from vision_batch.models import (
    BatchStatus,
    ImageInput,
    ImageRecord,
    ItemStatus,
    Metadata,
    VisionResult,
)
from vision_batch.records import build_record
from vision_batch.vision import UNKNOWN_ERROR


DEFAULT_ITEM_DELAY = 0.2
COMPLETED_LABEL = "Processing completed"

ProgressCallback = Callable[[float, str], None]
MetadataExtractor = Callable[[ImageInput], Awaitable[Metadata]]


class Analyzer(Protocol):
    async def analyze(self, file: ImageInput, api_key: str) -> VisionResult: ...


class BatchReporter:
    """
    Presentation hooks called by the orchestrator.

    Every hook is a no-op here; subclasses override the ones they render.
    """

    def on_progress(self, percent: float, label: str) -> None:
        pass

    def on_status(self, index: int, name: str, status: ItemStatus) -> None:
        pass

    def on_row(self, record: ImageRecord) -> None:
        pass

    def on_error(self, index: int, name: str, message: str) -> None:
        pass

    def on_rejected(self, count: int, max_size_mb: float) -> None:
        pass


@dataclass
class BatchState:
    """Images and results owned by a single orchestrator."""

    images: list[ImageInput] = field(default_factory=list)
    records: list[ImageRecord] = field(default_factory=list)
    statuses: list[ItemStatus] = field(default_factory=list)
    status: BatchStatus = BatchStatus.IDLE

    def reset(self, images: Sequence[ImageInput] = ()) -> None:
        self.images = list(images)
        self.records = []
        self.statuses = [ItemStatus.PENDING] * len(self.images)
        self.status = BatchStatus.IDLE


class BatchOrchestrator:
    """Drive every image of a batch through extraction, analysis and record building."""

    def __init__(
        self,
        client: Analyzer,
        reporter: BatchReporter | None = None,
        *,
        delay: float = DEFAULT_ITEM_DELAY,
        extractor: MetadataExtractor = extract_metadata,
    ) -> None:
        if delay < 0:
            msg = f"delay must not be negative, got {delay}"
            raise ValueError(msg)
        self.client = client
        self.reporter = reporter or BatchReporter()
        self.delay = delay
        self.extractor = extractor
        self.state = BatchState()

    @property
    def records(self) -> list[ImageRecord]:
        return list(self.state.records)

    @property
    def status(self) -> BatchStatus:
        return self.state.status

    def load(
        self,
        candidates: Sequence[ImageInput],
        max_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB,
    ) -> GateResult:
        """Replace the current image set with the candidates that pass the size gate."""
        self._ensure_not_running()
        result = accept(candidates, max_size_mb)
        if result.rejected_count:
            self._notify(self.reporter.on_rejected, result.rejected_count, max_size_mb)
        self.state.reset(result.accepted)
        logger.info("batch_loaded", accepted=len(result.accepted), rejected=result.rejected_count)
        return result

    def clear(self) -> None:
        self._ensure_not_running()
        self.state.reset()
        logger.info("batch_cleared")

    def export(self, destination: Path = Path(DEFAULT_REPORT_NAME)) -> Path:
        return export_csv(self.state.records, destination)

    def _ensure_not_running(self) -> None:
        if self.state.status is BatchStatus.RUNNING:
            msg = "A batch is already running"
            raise ValidationError(msg)

    def _notify(self, hook: Callable[..., None], *args: object) -> None:
        """Call a presentation hook; a failing hook is logged and never stops the batch."""
        try:
            hook(*args)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "reporter_hook_failed",
                hook=getattr(hook, "__name__", repr(hook)),
                error=str(exc),
            )

    def _set_status(self, index: int, name: str, status: ItemStatus) -> None:
        self.state.statuses[index] = status
        self._notify(self.reporter.on_status, index, name, status)

    def _progress(self, percent: float, label: str, on_progress: ProgressCallback | None) -> None:
        self._notify(self.reporter.on_progress, percent, label)
        if on_progress is not None:
            self._notify(on_progress, percent, label)

    async def _process_item(self, index: int, file: ImageInput, api_key: str) -> None:
        self._set_status(index, file.name, ItemStatus.PROCESSING)
        record: ImageRecord | None = None
        error: str | None = None
        try:
            meta = await self.extractor(file)
            vision = await self.client.analyze(file, api_key)
            if vision.failed:
                error = vision.error
            else:
                record = build_record(meta, vision)
        except Exception as exc:  # noqa: BLE001
            logger.exception("item_processing_exception", error=str(exc))
            error = str(exc) or type(exc).__name__

        if record is None:
            error = error or UNKNOWN_ERROR
            logger.error("item_failed", error=error)
            self._notify(self.reporter.on_error, index, file.name, error)
            self._set_status(index, file.name, ItemStatus.ERROR)
            return

        self.state.records.append(record)
        self._notify(self.reporter.on_row, record)
        self._set_status(index, file.name, ItemStatus.COMPLETED)
        logger.info("item_completed", category=record.category_slug)

    async def run(
        self,
        images: Sequence[ImageInput] | None = None,
        api_key: str = "",
        on_progress: ProgressCallback | None = None,
    ) -> list[ImageRecord]:
        """
        Process a batch one image at a time and return the records that succeeded.

        Args:
            images: Images to process; defaults to the set stored by `load`
            api_key: Key for the vision service (never stored)
            on_progress: Optional extra callback receiving (percent, label)

        Returns:
            Records in input order, failed images omitted.

        Raises:
            ValidationError: If there are no images, the key is blank, or a batch is running.

        """
        self._ensure_not_running()
        batch = list(images) if images is not None else list(self.state.images)
        if not batch:
            msg = "Add images before processing"
            raise ValidationError(msg)
        key = (api_key or "").strip()
        if not key:
            msg = "An API key for the vision service is required"
            raise ValidationError(msg)

        # A rerun over the same images starts from a clean result set.
        self.state.reset(batch)
        self.state.status = BatchStatus.RUNNING
        total = len(self.state.images)
        logger.info("batch_started", total=total, delay=self.delay)

        try:
            for index, file in enumerate(self.state.images):
                self._progress((index + 1) / total * 100, f"Processing {file.name}", on_progress)
                with logger.contextualize(file=file.name, index=f"{index + 1}/{total}"):
                    await self._process_item(index, file, key)
                if self.delay:
                    await asyncio.sleep(self.delay)
        finally:
            self.state.status = BatchStatus.COMPLETED

        self._progress(100.0, COMPLETED_LABEL, on_progress)
        failed = self.state.statuses.count(ItemStatus.ERROR)
        logger.info(
            "batch_completed",
            total=total,
            successful=len(self.state.records),
            failed=failed,
        )
        return list(self.state.records)
