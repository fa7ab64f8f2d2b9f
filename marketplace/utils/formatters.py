"""
Text helpers for catalog data.
"""
import re
import unicodedata
from typing import Iterable, Optional, Union


def slugify(value: Optional[str]) -> str:
    """
    Lowercase ASCII slug with hyphens.

    Examples:
        slugify("Blue T-Shirt (XL)") -> "blue-t-shirt-xl"
        slugify("Café  Crème") -> "cafe-creme"
    """
    if not value:
        return ''
    normalized = unicodedata.normalize('NFKD', value).encode('ascii', 'ignore').decode('ascii')
    normalized = re.sub(r'[^a-zA-Z0-9]+', '-', normalized).strip('-')
    return normalized.lower()


def join_tags(tags: Union[str, Iterable[str], None]) -> Optional[str]:
    """Store tags as a comma separated string; accepts a list or an already joined string."""
    if tags is None:
        return None
    if isinstance(tags, str):
        parts = tags.split(',')
    else:
        parts = list(tags)
    cleaned = [str(tag).strip() for tag in parts if str(tag).strip()]
    return ','.join(cleaned) if cleaned else None
