"""Merge local metadata and remote labels into a report row."""

from loguru import logger

from vision_batch.category import resolve_category
from vision_batch.models import ImageRecord, Metadata, VisionResult


LABEL_SCORE_THRESHOLD = 0.6
MAX_DESCRIPTION_LENGTH = 100


def select_tags(vision: VisionResult, threshold: float = LABEL_SCORE_THRESHOLD) -> list[str]:
    """
    Lowercased label texts scoring strictly above `threshold`, in service order.

    Labels without a score never pass.

    Examples:
        >>> labels = (Label(text="Cat", score=0.9), Label(text="Pet", score=0.6))  # doctest: +SKIP
        >>> select_tags(VisionResult(labels=labels))  # doctest: +SKIP
        ['cat']

    """
    return [
        label.text.lower()
        for label in vision.labels
        if label.score is not None and label.score > threshold
    ]


def quote_tags(tags: list[str]) -> str:
    """Join tags with ", " and wrap them in double quotes; empty list gives ""."""
    if not tags:
        return ""
    return '"' + ", ".join(tags) + '"'


def build_record(meta: Metadata, vision: VisionResult) -> ImageRecord:
    """
    Build the immutable report row for a successfully analyzed image.

    Args:
        meta: Metadata from the local extractor
        vision: A non-failed result from the vision client

    Returns:
        ImageRecord with truncated description, category slug and filtered tags.

    Raises:
        ValueError: If `vision` carries an error.

    """
    if vision.failed:
        msg = f"cannot build a record from a failed analysis: {vision.error}"
        raise ValueError(msg)

    tags = select_tags(vision)
    record = ImageRecord(
        name=meta.name,
        path=meta.path,
        size=meta.size,
        width=meta.width,
        height=meta.height,
        description=vision.description[:MAX_DESCRIPTION_LENGTH],
        category_slug=resolve_category(meta.path),
        tags=quote_tags(tags),
        tag_list=tuple(tags),
    )
    logger.debug(
        "record_built",
        category=record.category_slug,
        tags=len(tags),
        labels=len(vision.labels),
    )
    return record
