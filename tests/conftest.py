"""Shared fixtures: on-disk sample images and a reporter that records batch events."""

from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from vision_batch.models import ImageInput, ImageRecord, ItemStatus
from vision_batch.orchestrator import BatchReporter


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., ImageInput]:
    """Write a small JPEG under tmp_path and describe it as an ImageInput."""

    def _make(
        relative: str = "photos/animals/cat.jpg",
        size: tuple[int, int] = (64, 48),
    ) -> ImageInput:
        target = tmp_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color="green").save(target, format="JPEG")
        return ImageInput(
            source=target,
            name=target.name,
            path=relative,
            size=target.stat().st_size,
        )

    return _make


class RecordingReporter(BatchReporter):
    """Collect every presentation event for later assertions."""

    def __init__(self) -> None:
        self.progress: list[tuple[float, str]] = []
        self.statuses: list[tuple[int, ItemStatus]] = []
        self.rows: list[ImageRecord] = []
        self.errors: list[tuple[int, str, str]] = []
        self.rejected: list[tuple[int, float]] = []

    def on_progress(self, percent: float, label: str) -> None:
        self.progress.append((percent, label))

    def on_status(self, index: int, name: str, status: ItemStatus) -> None:  # noqa: ARG002
        self.statuses.append((index, status))

    def on_row(self, record: ImageRecord) -> None:
        self.rows.append(record)

    def on_error(self, index: int, name: str, message: str) -> None:
        self.errors.append((index, name, message))

    def on_rejected(self, count: int, max_size_mb: float) -> None:
        self.rejected.append((count, max_size_mb))


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()
