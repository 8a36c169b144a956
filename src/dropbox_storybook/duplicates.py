"""Duplicate detection over listed photos.

The hash is the file size plus the last 20 characters of the lower-cased file
name. It does not look at file content, so two different photos with the same
size and name tail are reported as duplicates.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import DuplicateGroup, Photo

NAME_TAIL = 20


def duplicate_hash(size: int, name: str) -> str:
    return f"{size}-{name[-NAME_TAIL:].lower()}"


def find_duplicate_groups(photos: Iterable[Photo]) -> list[DuplicateGroup]:
    by_hash: dict[str, list[Photo]] = {}
    for photo in photos:
        by_hash.setdefault(duplicate_hash(photo.size, photo.name), []).append(photo)

    groups = [(h, members) for h, members in by_hash.items() if len(members) > 1]
    return [
        DuplicateGroup(id=f"group-{i}", hash=h, photos=members)
        for i, (h, members) in enumerate(groups, start=1)
    ]
