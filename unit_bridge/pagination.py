"""Limit/offset resolution shared by every list endpoint."""

from typing import NamedTuple

from . import config


class Page(NamedTuple):
    take: int
    skip: int


def resolve_pagination(limit: int | None = None, offset: int | None = None) -> Page:
    """Clamp limit into [1, MAX_PAGE_SIZE] and offset to >= 0."""
    take = min(max(limit if limit is not None else config.DEFAULT_PAGE_SIZE, 1), config.MAX_PAGE_SIZE)
    skip = max(offset if offset is not None else 0, 0)
    return Page(take=take, skip=skip)
