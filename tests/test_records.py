"""Tests for turning metadata and vision results into report rows."""

import pytest

from vision_batch.models import ImageRecord, Label, Metadata, VisionResult
from vision_batch.records import build_record, quote_tags, select_tags


META = Metadata(name="cat.jpg", path="photos/animals/cat.jpg", size=2048, width=640, height=480)


def test_build_record_filters_labels_above_threshold() -> None:
    """Only labels scoring strictly above 0.6 become lowercased, quoted tags."""
    vision = VisionResult(
        labels=(Label(text="Cat", score=0.9), Label(text="Animal", score=0.5)),
        description="",
    )

    record = build_record(META, vision)

    assert record.tags == '"cat"'
    assert record.tag_list == ("cat",)


def test_build_record_threshold_is_exclusive_and_order_preserved() -> None:
    """A label at exactly 0.6 is dropped; kept labels follow the service order."""
    vision = VisionResult(
        labels=(
            Label(text="Whiskers", score=0.7),
            Label(text="Pet", score=0.6),
            Label(text="Cat", score=0.95),
        ),
    )

    record = build_record(META, vision)

    assert record.tags == '"whiskers, cat"'
    assert record.tag_list == ("whiskers", "cat")


def test_build_record_copies_metadata_and_category() -> None:
    """Metadata fields pass through and the category comes from the parent folder."""
    record = build_record(META, VisionResult(description="tabby"))

    assert record == ImageRecord(
        name="cat.jpg",
        path="photos/animals/cat.jpg",
        size=2048,
        width=640,
        height=480,
        description="tabby",
        category_slug="animals",
        tags="",
        tag_list=(),
    )


def test_build_record_truncates_description_without_ellipsis() -> None:
    """Descriptions are cut to exactly 100 characters."""
    long_text = "x" * 99 + "yz" + "tail"

    record = build_record(META, VisionResult(description=long_text))

    assert len(record.description) == 100
    assert record.description == "x" * 99 + "y"


def test_build_record_refuses_failed_analysis() -> None:
    """Failed vision results never produce a record."""
    with pytest.raises(ValueError, match="failed analysis"):
        build_record(META, VisionResult.from_error("API: quota"))


def test_tag_helpers() -> None:
    """Quoting joins with comma and space; labels without a score never pass."""
    assert quote_tags([]) == ""
    assert quote_tags(["a", "b"]) == '"a, b"'
    unscored = VisionResult.model_validate({"labels": [{"description": "Sky"}]})
    assert select_tags(unscored) == []


def test_build_record_skips_label_with_null_score() -> None:
    """A label whose score came back null is dropped instead of failing the image."""
    vision = VisionResult(
        labels=(Label(text="Cat", score=0.9), Label(text="Blur", score=None)),
        description="tabby",
    )

    record = build_record(META, vision)

    assert record.tags == '"cat"'
    assert record.tag_list == ("cat",)
