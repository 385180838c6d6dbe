"""Size policy applied to candidate images before they enter a batch."""

from collections.abc import Sequence
from typing import NamedTuple

from loguru import logger

from vision_batch.errors import OversizedFileError, ValidationError
from vision_batch.models import ImageInput


DEFAULT_MAX_FILE_SIZE_MB = 5.0
BYTES_PER_MB = 1024 * 1024


class GateResult(NamedTuple):
    accepted: list[ImageInput]
    rejected_count: int


def check_size(file: ImageInput, max_bytes: int) -> None:
    """Raise OversizedFileError when `file` is strictly larger than `max_bytes`."""
    if file.size > max_bytes:
        raise OversizedFileError(file.name, file.size, max_bytes)


def accept(
    candidates: Sequence[ImageInput],
    max_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB,
) -> GateResult:
    """
    Split candidates into accepted files and a count of oversized ones.

    A file exactly at the limit is accepted. Accepted files keep their input order.

    Examples:
        >>> result = accept(files, max_size_mb=5)  # doctest: +SKIP
        >>> result.rejected_count
        1

    """
    if max_size_mb <= 0:
        raise ValidationError(f"max_size_mb must be positive, got {max_size_mb}")

    max_bytes = int(max_size_mb * BYTES_PER_MB)
    accepted: list[ImageInput] = []
    rejected = 0
    for file in candidates:
        try:
            check_size(file, max_bytes)
        except OversizedFileError as exc:
            logger.warning("file_rejected_oversized", file=exc.name, size=exc.size, limit=max_bytes)
            rejected += 1
            continue
        accepted.append(file)

    if rejected:
        logger.warning(
            "oversized_files_skipped",
            rejected=rejected,
            accepted=len(accepted),
            max_size_mb=max_size_mb,
        )
    return GateResult(accepted=accepted, rejected_count=rejected)
