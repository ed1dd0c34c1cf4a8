"""Text normalization applied to content before it is chunked or embedded."""

import re
from typing import Optional

HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
URL_PATTERN = re.compile(r"https?://\S+")
MARKDOWN_PATTERN = re.compile(r"[*_`#\-\[\]]")
SPECIAL_CHARS_PATTERN = re.compile(r"[^\w\s.,!?\-]")
MULTIPLE_SPACES_PATTERN = re.compile(r"\s+")
EDGE_PUNCTUATION_PATTERN = re.compile(r"^[.,!?\-]+|[.,!?\-]+$")


def normalize(raw: Optional[str]) -> str:
    """Clean raw ticket or page text for embedding.

    The steps run in a fixed order because later patterns assume the earlier
    cleanup already happened (URLs are only recognisable once tags are gone,
    whitespace is only collapsed once characters have been removed).

    1. strip markup tags
    2. strip URLs
    3. strip markdown emphasis/heading/link punctuation
    4. strip characters other than letters, digits, whitespace and ``.,!?-``
    5. collapse whitespace runs to a single space
    6. lowercase
    7. trim
    8. strip leading/trailing punctuation

    Args:
        raw: Text to normalize. ``None`` and blank input give ``""``.

    Returns:
        The normalized text.

    Example:
        >>> normalize("<b>Hello</b> https://x.com WORLD!!")
        'hello world'
    """
    if raw is None or not raw.strip():
        return ""

    cleaned = HTML_TAG_PATTERN.sub("", raw)
    cleaned = URL_PATTERN.sub("", cleaned)
    cleaned = MARKDOWN_PATTERN.sub("", cleaned)
    cleaned = SPECIAL_CHARS_PATTERN.sub("", cleaned)
    cleaned = MULTIPLE_SPACES_PATTERN.sub(" ", cleaned)
    cleaned = cleaned.lower().strip()
    cleaned = EDGE_PUNCTUATION_PATTERN.sub("", cleaned)

    # removing edge punctuation can expose a space ("world !!")
    return cleaned.strip()


def is_valid_for_embedding(text: Optional[str], min_length: int, max_length: int) -> bool:
    """Check that ``text`` normalizes to a length within ``[min_length, max_length]``."""
    if text is None:
        return False

    length = len(normalize(text))
    return min_length <= length <= max_length


def truncate(text: Optional[str], max_length: int) -> Optional[str]:
    """Cut ``text`` to at most ``max_length`` characters and trim it."""
    if text is None or len(text) <= max_length:
        return text
    return text[:max_length].strip()
