"""
content/blog.py -- Derived fields for blog posts.

A post's slug, excerpt and reading time are computed from what the admin
writes, never sent by the client:

  slugify()       -- "Hello, World!" -> "hello-world"
  make_excerpt()  -- first 150 characters with markdown marks removed
  reading_time()  -- minutes at 200 words per minute, at least 1

publish_fields() keeps publish_date in step with status: the first move to
"published" stamps it, and an explicit date from the admin always wins.
"""

import math
import re
from typing import Optional

from core.errors import InvalidRequest

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 150

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_MARKDOWN_MARKS = re.compile(r"[#*`~\[\]()]")


def slugify(title: str) -> str:
    slug = _NON_ALNUM.sub("-", title.lower()).strip("-")
    if not slug:
        raise InvalidRequest("Title must contain at least one letter or digit.")
    return slug


def make_excerpt(content: str) -> str:
    plain = _MARKDOWN_MARKS.sub("", content)[:EXCERPT_LENGTH]
    return plain + ("..." if len(content) > EXCERPT_LENGTH else "")


def reading_time(content: str) -> int:
    return math.ceil(max(len(content.split()), 1) / WORDS_PER_MINUTE)


def publish_fields(
    current_publish_date: Optional[str],
    now_iso: str,
    status: Optional[str] = None,
    publish_date: Optional[str] = None,
) -> dict:
    """Return the status / publish_date columns to write, or {} when neither changes."""
    fields: dict = {}
    if status is not None:
        fields["status"] = status
    if publish_date is not None:
        fields["publish_date"] = publish_date
    elif status == "published" and current_publish_date is None:
        fields["publish_date"] = now_iso
    return fields
