"""Local, network-free metadata for a single image."""

import asyncio
from pathlib import Path

import rawpy
from loguru import logger
from PIL import Image

from vision_batch.models import ImageInput, Metadata


RASTER_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".bmp",
    ".gif",
    ".jpe",
    ".jp2",
    ".tif",
    ".tiff",
    ".heic",
    ".heif",
    ".avif",
    ".psd",
    ".ico",
    ".ppm",
    ".pgm",
    ".pbm",
}


def _raw_dimensions(image_path: Path) -> tuple[int, int] | None:
    """Read sensor output dimensions of a camera RAW file, or None if rawpy cannot."""
    try:
        with rawpy.imread(str(image_path)) as raw:  # type: ignore[no-untyped-call]
            sizes = raw.sizes
            return int(sizes.width), int(sizes.height)
    except Exception as exc:  # noqa: BLE001
        logger.debug("rawpy_probe_failed_falling_back_to_pil", error=str(exc))
        return None


def probe_dimensions(image_path: Path) -> tuple[int, int]:
    """
    Return (width, height) of an image without decoding its pixels.

    RAW formats are tried with rawpy first; everything else goes straight to PIL, which
    only parses the header. Any failure yields (0, 0).

    Examples:
        >>> probe_dimensions(Path("/photos/cat.jpg"))  # doctest: +SKIP
        (640, 480)
        >>> probe_dimensions(Path("/photos/not-an-image.txt"))  # doctest: +SKIP
        (0, 0)

    """
    if image_path.suffix.lower() not in RASTER_EXTENSIONS:
        dims = _raw_dimensions(image_path)
        if dims is not None:
            return dims

    try:
        with Image.open(image_path) as img:
            return img.width, img.height
    except Exception as exc:  # noqa: BLE001
        logger.warning("dimension_probe_failed", file=image_path.name, error=str(exc))
        return 0, 0


async def extract_metadata(file: ImageInput) -> Metadata:
    """Collect name, path hint, size and pixel dimensions of `file`."""
    width, height = await asyncio.to_thread(probe_dimensions, file.source)
    meta = Metadata(
        name=file.name,
        path=file.path,
        size=file.size,
        width=width,
        height=height,
    )
    logger.debug("metadata_extracted", width=width, height=height, size=file.size)
    return meta
