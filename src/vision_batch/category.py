"""Category slugs derived from the directory an image lives in."""

import re


_SLUG_RE = re.compile(r"^[\w-]+$", re.ASCII)
MIN_PATH_SEGMENTS = 2


def resolve_category(path: str | None) -> str:
    """
    Return the lowercased parent directory name of `path`, or "" when there is none.

    Both `/` and `\\` separate segments. The parent segment must be made only of word
    characters and hyphens.

    Examples:
        >>> resolve_category("photos/Animals/cat.jpg")
        'animals'
        >>> resolve_category("C:\\\\pics\\\\dogs\\\\rex.png")
        'dogs'
        >>> resolve_category("cat.jpg")
        ''
        >>> resolve_category("a/b!c/cat.jpg")
        ''

    """
    if not path:
        return ""
    parts = path.replace("\\", "/").split("/")
    if len(parts) < MIN_PATH_SEGMENTS:
        return ""
    slug = parts[-2]
    if _SLUG_RE.fullmatch(slug):
        return slug.lower()
    return ""
