"""Lay a scrapbook's photos out onto pages."""

from __future__ import annotations

from collections.abc import Sequence

from .models import ScrapbookPage, StoredPhoto

GRID_SIZE = 4


def generate_pages(photos: Sequence[StoredPhoto]) -> list[ScrapbookPage]:
    """Place photos in order: full grids of four, then whatever remains.

    The tail decides the last template: one photo is full-bleed, two are
    two-up and three share a grid.
    """
    pages: list[ScrapbookPage] = []
    i = 0
    while i < len(photos):
        remaining = len(photos) - i
        if remaining == 1:
            template, take = "full-bleed", 1
        elif remaining == 2:
            template, take = "two-up", 2
        else:
            template, take = "grid", min(remaining, GRID_SIZE)
        pages.append(
            ScrapbookPage(
                id=f"page-{len(pages) + 1}",
                template=template,
                photos=list(photos[i : i + take]),
            )
        )
        i += take
    return pages
