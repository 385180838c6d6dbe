#!/usr/bin/env python3
"""
Vision Batch: CLI app to label a batch of images with a remote vision service.

Every image is measured locally (name, path, size, dimensions), sent once to the
annotation service for labels and a best-guess description, and turned into a row of a
CSV report. Images are processed one at a time; a failing image is reported and skipped.

The category of an image is the name of the folder it sits in, so point the tool at a
folder tree such as `photos/animals/cat.jpg` to get an `animals` category.

Requirements:
 - A key for the vision service. It is asked for interactively unless --api-key is given,
   and it is never stored.

"""
# ruff: noqa: PLR0913

import asyncio
import contextlib
import sys
from datetime import UTC, datetime
from getpass import getpass
from itertools import chain
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import App, Parameter, validators
from loguru import logger

from vision_batch import __version__
from vision_batch.errors import ValidationError
from vision_batch.export import DEFAULT_REPORT_NAME
from vision_batch.gate import DEFAULT_MAX_FILE_SIZE_MB
from vision_batch.models import ImageInput, ImageRecord, ItemStatus
from vision_batch.orchestrator import DEFAULT_ITEM_DELAY, BatchOrchestrator, BatchReporter
from vision_batch.vision import DEFAULT_VISION_URL, VisionClient


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "OFF"]

DEFAULT_EXTENSIONS = "jpg,jpeg,png,gif,webp,bmp,tif,tiff"


# Cyclopts app
app = App(
    name="vision-batch",
    version=__version__,
)


BATCH_LOG_NAME = "%Y%m%d%H%M%S-vision_batch.log"

# Defaults for the per-item context the orchestrator binds.
_CONTEXT_DEFAULTS = {"index": "-", "file": "-"}


def setup_logging(
    file_log_level: LogLevel = "DEBUG",
    console_log_level: LogLevel = "INFO",
    log_folder: Path = Path("logs"),
) -> Path | None:
    """
    Send batch events to the console and to one log file per run.

    Either sink is skipped when its level is 'OFF'. Returns the log file path, if any.
    """
    logger.remove()
    logger.configure(extra=_CONTEXT_DEFAULTS)

    log_file = None
    if file_log_level != "OFF":
        log_folder.mkdir(parents=True, exist_ok=True)
        log_file = log_folder / datetime.now(tz=UTC).strftime(BATCH_LOG_NAME)
        logger.add(
            log_file,
            level=file_log_level,
            encoding="utf-8",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[index]:>7} {extra[file]:<30} | "
                "{name}:{function}:{line} | "
                "{message} | "
                "{extra}"
            ),
        )

    if console_log_level != "OFF":
        logger.add(
            sys.stderr,
            level=console_log_level,
            colorize=True,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <7}</level> | "
                "<cyan>{extra[index]:>7}</cyan> | "
                "<level>{message:<40}</level> | "
                "<yellow>{extra}</yellow>"
            ),
        )

    return log_file


class LoggingReporter(BatchReporter):
    """Render batch progress, item statuses and new rows as log events."""

    def __init__(self) -> None:
        self.errors: list[tuple[str, str]] = []

    def on_progress(self, percent: float, label: str) -> None:
        logger.info("progress", percent=round(percent, 1), label=label)

    def on_status(self, index: int, name: str, status: ItemStatus) -> None:
        logger.debug("item_status", index=index, file=name, status=str(status))

    def on_row(self, record: ImageRecord) -> None:
        logger.info(
            "row_added",
            file=record.name,
            size=f"{record.width}x{record.height}",
            category=record.category_slug,
            tags=record.tags,
        )

    def on_error(self, index: int, name: str, message: str) -> None:
        self.errors.append((name, message))
        logger.error("image_failed", file=name, error=message)

    def on_rejected(self, count: int, max_size_mb: float) -> None:
        logger.warning(
            "some_files_exceed_size_limit",
            count=count,
            max_size_mb=max_size_mb,
            hint="These files were not loaded",
        )


def _parse_extensions(image_extensions: str) -> set[str]:
    """
    Normalize comma-separated extensions into a lowercase set like {".jpg", ".png"}.

    Examples:
        >>> sorted(_parse_extensions("jpg, .PNG ,"))
        ['.jpg', '.png']

    """
    return {
        f".{ext.strip().lstrip('.').lower()}"
        for ext in image_extensions.split(",")
        if ext.strip().lstrip(".")
    }


def _resolve_image_files(
    inputs: list[Path],
    ext_set: set[str],
    *,
    recursive: bool,
) -> list[ImageInput]:
    """
    Resolve provided inputs into image descriptions.

    - Directories are expanded by extension (honoring --recursive), sorted by path, and
      their files get a path hint starting at the directory name
    - Explicit files are accepted as-is (extension filter not applied)
    - Order is preserved and duplicates removed
    """
    pattern = "**/*" if recursive else "*"

    files_from_dirs: list[tuple[Path, Path | None]] = []
    files_explicit: list[tuple[Path, Path | None]] = []

    for path in inputs:
        path_resolved = path
        with contextlib.suppress(OSError):
            path_resolved = path.resolve()
        if path_resolved.is_dir():
            found = [
                f
                for f in path_resolved.glob(pattern)
                if f.is_file() and f.suffix.lower() in ext_set
            ]
            files_from_dirs.extend((f, path_resolved) for f in sorted(found))
        elif path_resolved.is_file():
            files_explicit.append((path, None))
        else:
            logger.warning("input_not_file_or_dir", path=str(path))

    combined: list[ImageInput] = []
    seen = set()
    for f, root in chain(files_explicit, files_from_dirs):
        key = str(f.resolve())
        if key not in seen:
            combined.append(ImageInput.from_path(f, root))
            seen.add(key)

    return combined


def _resolve_image_batch(
    inputs: list[Path] | None,
    image_extensions: str,
    *,
    recursive: bool,
) -> list[ImageInput]:
    ext_set = _parse_extensions(image_extensions)
    if not ext_set:
        logger.error("no_valid_extensions_provided", raw_input=image_extensions)
        raise SystemExit(1)
    logger.debug("parsed_extensions", extensions=sorted(ext_set))

    if not inputs:
        logger.error(
            "no_inputs_provided",
            hint=("Pass one or more --input/-i paths (files or directories)"),
        )
        raise SystemExit(1)

    image_files = _resolve_image_files(inputs, ext_set, recursive=recursive)
    if not image_files:
        logger.error(
            "no_image_files_found",
            inputs=[str(p) for p in inputs],
            recursive=recursive,
            extensions=sorted(ext_set),
        )
        raise SystemExit(1)

    logger.info("image_files_discovered", count=len(image_files))
    return image_files


def _prompt_api_key() -> str:
    try:
        return getpass("Vision API key: ")
    except (EOFError, KeyboardInterrupt) as exc:
        logger.error("api_key_prompt_aborted")
        raise SystemExit(1) from exc


async def _run_batch(
    orchestrator: BatchOrchestrator,
    client: VisionClient,
    api_key: str,
) -> list[ImageRecord]:
    async with client:
        return await orchestrator.run(api_key=api_key)


@app.default
def process(
    inputs: Annotated[
        list[Path] | None,
        Parameter(
            name=("--input", "-i"),
            validator=validators.Path(exists=True),
            help="One or more paths: files and/or directories (repeat this option)",
        ),
    ] = None,
    *,
    output: Annotated[
        Path,
        Parameter(
            name=("--output", "-o"),
            help="Where to write the CSV report",
        ),
    ] = Path(DEFAULT_REPORT_NAME),
    image_extensions: Annotated[
        str,
        Parameter(
            name=("--ext", "--extensions"),
            help="Comma-separated image file extensions to pick from directories",
        ),
    ] = DEFAULT_EXTENSIONS,
    recursive: Annotated[
        bool,
        Parameter(
            name=("--recursive", "-r"),
            help="Process files in subdirectories recursively",
        ),
    ] = False,
    api_key: Annotated[
        str | None,
        Parameter(
            name=("--api-key", "-k"),
            help="Vision service API key. Asked for interactively if not set",
        ),
    ] = None,
    endpoint: Annotated[
        str,
        Parameter(name=("--endpoint", "-u"), help="Annotation endpoint URL"),
    ] = DEFAULT_VISION_URL,
    max_size_mb: Annotated[
        float,
        Parameter(
            name=("--max-size-mb",),
            help="Skip images larger than this many megabytes",
        ),
    ] = DEFAULT_MAX_FILE_SIZE_MB,
    delay: Annotated[
        float,
        Parameter(
            name=("--delay",),
            help="Pause in seconds between two images",
        ),
    ] = DEFAULT_ITEM_DELAY,
    file_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--file-log-level",
            help="Log level for file (use 'OFF' to disable)",
        ),
    ] = "DEBUG",
    log_folder: Annotated[
        Path,
        Parameter(
            name=("--log-folder",),
            help="Folder where log files are stored",
        ),
    ] = Path("logs"),
    console_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--console-log-level",
            help="Log level for console (use 'OFF' to disable)",
        ),
    ] = "INFO",
) -> None:
    """
    Label images with the vision service and save the results as a CSV report.

    Inputs:
    - One or more --input/-i paths (files and/or directories; repeatable).
    - Files are processed as is. Directories use --ext (add --recursive for subfolders).
    - Images larger than --max-size-mb are skipped with a warning.

    Behavior:
    - Reads size and dimensions locally, then sends each image to the service once.
    - Keeps labels scoring above 0.6 as tags and the best-guess label as description.
    - Processes one image at a time with a --delay pause in between.

    Exit status: returns 1 if no inputs, no images left, no API key, or any image fails.

    Examples:
        vision-batch -i ./photos -r
        vision-batch -i ./photos/animals/cat.jpg -o report.csv

    """
    setup_logging(
        file_log_level=file_log_level,
        console_log_level=console_log_level,
        log_folder=log_folder,
    )
    logger.info(
        "starting_vision_batch",
        inputs=[str(p) for p in (inputs or [])],
        extensions=image_extensions,
        endpoint=endpoint,
        api_key_present=bool(api_key),
        recursive=recursive,
        max_size_mb=max_size_mb,
        delay=delay,
        output=str(output),
    )

    candidates = _resolve_image_batch(inputs, image_extensions, recursive=recursive)

    reporter = LoggingReporter()
    client = VisionClient(endpoint=endpoint)
    orchestrator = BatchOrchestrator(client, reporter, delay=delay)
    try:
        gate = orchestrator.load(candidates, max_size_mb)
    except ValidationError as exc:
        logger.error("invalid_batch", error=str(exc))
        raise SystemExit(1) from exc
    if not gate.accepted:
        logger.error("no_files_left_after_size_check", rejected=gate.rejected_count)
        raise SystemExit(1)

    key = api_key if api_key is not None else _prompt_api_key()
    try:
        records = asyncio.run(_run_batch(orchestrator, client, key))
    except ValidationError as exc:
        logger.error("batch_not_started", error=str(exc))
        raise SystemExit(1) from exc

    orchestrator.export(output)

    file_count = len(gate.accepted)
    logger.info(
        "processing_summary",
        total_files=file_count,
        successful=len(records),
        failed=len(reporter.errors),
        rejected=gate.rejected_count,
        report=str(output),
    )
    if reporter.errors:
        logger.error("files_failed", files=[name for name, _ in reporter.errors])

    if len(records) < file_count:
        raise SystemExit(1)


if __name__ == "__main__":
    app()
