"""Helpers of the in-memory scan: substring search and page slicing."""

from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from marketdb.models.firestore_types import BaseDoc, MANAGED_FIELDS


def _field_texts(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str):
                yield item


def matches_search(doc: BaseDoc, search: Optional[str], fields: Sequence[str]) -> bool:
    """Case-insensitive substring match over the given fields.

    With no fields, every string (or list of strings) field except the
    managed ones is searched.
    """
    if not search:
        return True
    needle = search.strip().lower()
    if not needle:
        return True

    data = doc.model_dump()
    names = fields or [name for name in data if name not in MANAGED_FIELDS]
    for name in names:
        for text in _field_texts(data.get(name)):
            if needle in text.lower():
                return True
    return False


def filter_documents(
    docs: Iterable[BaseDoc],
    search: Optional[str],
    fields: Sequence[str],
    predicate: Optional[Callable[[BaseDoc], bool]] = None,
) -> List[BaseDoc]:
    return [
        doc for doc in docs
        if matches_search(doc, search, fields) and (predicate is None or predicate(doc))
    ]


def slice_page(items: Sequence[Any], page: int, page_size: int) -> Tuple[List[Any], bool]:
    """Return the 1-based page of items and whether more items follow it."""
    start = (page - 1) * page_size
    end = start + page_size
    return list(items[start:end]), end < len(items)
