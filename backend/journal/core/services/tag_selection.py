from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

MAX_NOTE_TAGS = 3

_TAG_RE = re.compile(r"[a-z0-9]+")


def is_valid_tag(tag: str) -> bool:
    """Single lowercase alphanumeric token."""
    return _TAG_RE.fullmatch(tag) is not None


def remaining_tag_slots(current_count: int, cap: int = MAX_NOTE_TAGS) -> int:
    return max(0, cap - current_count)


def select_tags(
    candidates: Iterable[str],
    existing_user_tags: Iterable[str],
    tags_on_note: Iterable[str],
    max_new: int,
) -> list[str]:
    """Pick up to ``max_new`` tags to add to a note.

    Tags the user already has in their catalog come first so the vocabulary
    stays small; within each group the model's order is kept. Invalid
    candidates, duplicates and tags already on the note are dropped.
    """
    if max_new <= 0:
        return []

    catalog = {t.strip().lower() for t in existing_user_tags}
    on_note = {t.strip().lower() for t in tags_on_note}

    preferred: list[str] = []
    novel: list[str] = []
    seen: set[str] = set()
    for raw in candidates:
        tag = raw.strip().lower()
        if not tag or not is_valid_tag(tag) or tag in on_note or tag in seen:
            continue
        seen.add(tag)
        if tag in catalog:
            preferred.append(tag)
        else:
            novel.append(tag)

    return (preferred + novel)[:max_new]
