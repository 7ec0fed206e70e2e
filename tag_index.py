"""
tag_index.py

Tag helpers for a static site: the distinct tag set of a collection of items,
membership tests, occurrence counts, frequency ranks for tag clouds, and
in-memory listing pages (one per tag).

Every query takes the item collection explicitly. TagIndex binds a Site and
fills in the defaults: the whole site for most queries, the sorted articles
for items_with_tag.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union


class TaggingError(Exception):
    """Base class for tag index failures."""


class InvalidArgumentError(TaggingError, ValueError):
    pass


class InvalidTagError(InvalidArgumentError):
    pass


class RankDivisionError(TaggingError, ZeroDivisionError):
    """All tag counts are equal, so there is no spread to split into ranks."""


@dataclass(frozen=True)
class RenderInstruction:
    """Deferred content: the host renders `template` with `params` as locals."""

    template: str
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class Item:
    identifier: str
    title: str = ""
    tags: Optional[List[str]] = None
    kind: str = "page"
    created_at: Optional[datetime] = None
    content: Union[str, RenderInstruction] = ""
    binary: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)


def _check_tag(tag: Any) -> None:
    if not isinstance(tag, str):
        raise InvalidTagError(f"tag must be a string, got {type(tag).__name__}: {tag!r}")


def _flatten_tags(items: Iterable[Item]) -> List[str]:
    tags: List[str] = []
    for item in items:
        if item.tags is None:
            continue
        for tag in item.tags:
            if tag is None:
                continue
            _check_tag(tag)
            tags.append(tag)
    return tags


def tag_set(items: Iterable[Item]) -> List[str]:
    """Distinct tags of `items`, in order of first appearance."""
    return list(dict.fromkeys(_flatten_tags(items)))


def has_tag(item: Item, tag: str) -> bool:
    _check_tag(tag)
    if item.tags is None:
        return False
    return tag in item.tags


def items_with_tag(tag: str, items: Iterable[Item]) -> List[Item]:
    """Items carrying `tag`, in the order given."""
    _check_tag(tag)
    return [item for item in items if has_tag(item, tag)]


def count_tags(items: Iterable[Item]) -> Counter:
    """Return {tag: occurrences}. Untagged items contribute nothing."""
    return Counter(_flatten_tags(items))


def rank_tags(n: int, items: Sequence[Item]) -> Dict[str, int]:
    """
    Sort the tags of `items` into `n` frequency classes.

    Rank 0 holds the most frequent tags, rank n-1 the least frequent. The
    lower bound starts at the number of items rather than at the smallest
    count, and is only lowered by counts below it.
    """
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        raise InvalidArgumentError(f"number of ranks must be a positive integer, got {n!r}")

    count = count_tags(items)
    if not count:
        return {}

    high, low = 0, len(items)
    for occurrences in count.values():
        high = max(high, occurrences)
        low = min(low, occurrences)
    divisor = (float(high) - low) / n
    if divisor == 0:
        raise RankDivisionError(
            f"cannot split tags into {n} ranks: max and min counts are both {high}"
        )

    ranks: Dict[str, int] = {}
    for tag, occurrences in count.items():
        rank = n - 1 - math.floor((occurrences - low) / divisor)
        ranks[tag] = int(max(rank, 0))
    return ranks


def create_tag_pages(items: List[Item]) -> List[Item]:
    """
    Append one listing page per tag to `items` and return the new pages.

    Each page renders the `section` template with the tag as a local. Pages
    are built before anything is appended, so `items` is either extended with
    all of them or left untouched.
    """
    pages = [
        Item(
            identifier=f"/{tag.lower()}/",
            title=tag,
            kind="tag",
            content=RenderInstruction("section", {"tag": tag}),
            binary=False,
        )
        for tag in tag_set(items)
    ]
    items.extend(pages)
    return pages


def sorted_articles(items: Iterable[Item]) -> List[Item]:
    """Articles, newest first. Undated articles go last."""
    articles = [item for item in items if item.kind == "article"]
    dated = [a for a in articles if a.created_at is not None]
    undated = [a for a in articles if a.created_at is None]
    dated.sort(key=lambda a: a.created_at, reverse=True)
    return dated + undated


@dataclass
class Site:
    items: List[Item] = field(default_factory=list)

    def sorted_articles(self) -> List[Item]:
        return sorted_articles(self.items)


class TagIndex:
    """Tag queries over a site, defaulting to the site's own items."""

    def __init__(self, site: Site) -> None:
        self.site = site

    def tag_set(self, items: Optional[Sequence[Item]] = None) -> List[str]:
        return tag_set(self.site.items if items is None else items)

    def has_tag(self, item: Item, tag: str) -> bool:
        return has_tag(item, tag)

    def items_with_tag(self, tag: str, items: Optional[Sequence[Item]] = None) -> List[Item]:
        if items is None:
            items = self.site.sorted_articles()
        return items_with_tag(tag, items)

    def count_tags(self, items: Optional[Sequence[Item]] = None) -> Counter:
        return count_tags(self.site.items if items is None else items)

    def rank_tags(self, n: int, items: Optional[Sequence[Item]] = None) -> Dict[str, int]:
        return rank_tags(n, self.site.items if items is None else items)

    def create_tag_pages(self) -> List[Item]:
        return create_tag_pages(self.site.items)
