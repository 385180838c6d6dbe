"""Tests for deriving category slugs from path hints."""

import pytest

from vision_batch.category import resolve_category


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("photos/animals/cat.jpg", "animals"),
        ("photos/Big-Cats/lion.jpg", "big-cats"),
        ("C:\\Users\\me\\Dogs\\rex.png", "dogs"),
        ("mixed\\sep/snake_case/x.gif", "snake_case"),
        ("animals/cat.jpg", "animals"),
        ("cat.jpg", ""),
        ("", ""),
        (None, ""),
        ("a/b!c/cat.jpg", ""),
        ("a/with space/cat.jpg", ""),
        ("a//cat.jpg", ""),
        ("a/caf\u00e9/cat.jpg", ""),
    ],
)
def test_resolve_category(path: str | None, expected: str) -> None:
    """The parent folder becomes the slug only when it is made of word chars and hyphens."""
    assert resolve_category(path) == expected
