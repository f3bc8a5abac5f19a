from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import ContentItem


class PostCollection(Sequence[ContentItem]):
    """Lightweight helper for working with lists of posts in templates and code."""

    def __init__(self, items: Iterable[ContentItem]):
        self._items = list(items)

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item):
        return self._items[item]

    def in_category(self, name: str) -> PostCollection:
        return PostCollection(p for p in self._items if name in p.categories)

    def drafts(self) -> PostCollection:
        return PostCollection(p for p in self._items if p.draft)

    def published(self) -> PostCollection:
        return PostCollection(p for p in self._items if not p.draft)

    def sorted(self, reverse: bool = True) -> PostCollection:
        """Sort posts by date, newest first by default.

        Ties are broken by identifier, ascending, whatever the direction.
        Undated items sort as the oldest.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PostCollection with sorted posts.
        """
        by_identifier = sorted(self._items, key=lambda p: p.identifier)
        return PostCollection(
            sorted(by_identifier, key=_date_key, reverse=reverse)
        )

    def latest(self, count: int = 5) -> PostCollection:
        return PostCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._items)} items)"


def _date_key(item: ContentItem):
    return (item.date is not None, item.date or 0)


class CategoryCollection(Mapping[str, PostCollection]):
    """Mapping of category name to PostCollection, newest post first."""

    def __init__(self, mapping: Mapping[str, Iterable[ContentItem]]):
        self._mapping = {
            k: PostCollection(v).sorted() for k, v in sorted(mapping.items())
        }

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"CategoryCollection({len(self._mapping)} categories)"


def build_category_index(items: Iterable[ContentItem]) -> CategoryCollection:
    """Group posts by category.

    Args:
        items: Posts (pages are ignored).

    Returns:
        CategoryCollection keyed by category name.
    """
    index: dict[str, list[ContentItem]] = {}
    for item in items:
        if not item.is_post:
            continue
        for category in item.categories:
            index.setdefault(category, []).append(item)
    return CategoryCollection(index)
