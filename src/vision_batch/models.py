"""Typed records that flow through the batch pipeline."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ItemStatus(StrEnum):
    """Lifecycle of a single image inside a batch."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class BatchStatus(StrEnum):
    """Lifecycle of a batch run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class ImageInput(BaseModel):
    """
    A caller-owned image waiting to be processed.

    `source` is the file holding the bytes; `path` is the path-like hint used to
    derive the category (it may contain directory segments).
    """

    model_config = ConfigDict(frozen=True)

    source: Path
    name: str
    path: str = ""
    size: int = Field(ge=0)

    @classmethod
    def from_path(cls, source: Path, root: Path | None = None) -> "ImageInput":
        """
        Describe a file on disk.

        When `root` is given, the path hint is `source` relative to the parent of
        `root`, so the directory the user picked stays the first segment.

        Examples:
            >>> root = Path("/data/photos")  # doctest: +SKIP
            >>> ImageInput.from_path(root / "cats" / "a.jpg", root)  # doctest: +SKIP
            ImageInput(source=..., name='a.jpg', path='photos/cats/a.jpg', size=...)

        """
        if root is not None:
            try:
                hint = source.relative_to(root.parent).as_posix()
            except ValueError:
                hint = str(source)
        else:
            hint = str(source)
        return cls(source=source, name=source.name, path=hint, size=source.stat().st_size)


class Metadata(BaseModel):
    """Structural metadata derived locally from an image."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str = ""
    size: int = 0
    width: int = 0
    height: int = 0


class Label(BaseModel):
    """A remote label with its confidence score."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(default="", alias="description")
    score: float | None = None


class VisionResult(BaseModel):
    """Normalized outcome of one remote analysis call."""

    model_config = ConfigDict(frozen=True)

    labels: tuple[Label, ...] = ()
    description: str = ""
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def from_error(cls, message: str) -> "VisionResult":
        return cls(labels=(), description="", error=message)


class ImageRecord(BaseModel):
    """Final, immutable per-image row of the report."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    size: int
    width: int
    height: int
    description: str = ""
    category_slug: str = ""
    tags: str = ""
    tag_list: tuple[str, ...] = ()
