from collections import defaultdict
from datetime import date
from typing import Callable, Iterable, Mapping

from networth.domain import Category, Transaction

TransactionFilter = Callable[[Transaction], bool]


def by_date_range(start: date, end: date) -> TransactionFilter:
    def _filter(t: Transaction) -> bool:
        return start <= t.date <= end

    return _filter


def by_account(account_ids: Iterable[str]) -> TransactionFilter:
    wanted = frozenset(account_ids)

    def _filter(t: Transaction) -> bool:
        return t.sender_account_id in wanted or t.receiver_account_id in wanted

    return _filter


def by_category_tree(cats: tuple[Category, ...], root_id: str) -> TransactionFilter:
    """Match transactions filed under `root_id` or any of its descendants."""
    wanted = {root_id} | {c.id for c in flatten_categories(cats, root_id)}

    def _filter(t: Transaction) -> bool:
        return t.category_id in wanted

    return _filter


def flatten_categories(
    cats: tuple[Category, ...], root: str | None, visited: set[str] | None = None
) -> tuple[Category, ...]:
    if visited is None:
        visited = set() if root is None else {root}
    children = tuple(c for c in cats if c.parent_id == root and c.id not in visited)
    visited.update(c.id for c in children)
    result = children
    for child in children:
        result += flatten_categories(cats, child.id, visited)
    return result


def top_level_of(cats: Mapping[str, Category], category_id: str, visited: set[str] | None = None) -> Category | None:
    """Walk up the parent chain to the category directly under the root."""
    if visited is None:
        visited = set()
    category = cats.get(category_id)
    if category is None or category_id in visited:
        return None
    visited.add(category_id)
    if category.parent_id is None or category.parent_id not in cats:
        return category
    return top_level_of(cats, category.parent_id, visited) or category


def totals_by_top_level(cats: tuple[Category, ...], totals: Mapping[str, float]) -> dict[str, float]:
    index = {c.id: c for c in cats}
    result: dict[str, float] = defaultdict(float)
    for category_id, amount in totals.items():
        top = top_level_of(index, category_id)
        result[top.name if top is not None else "Uncategorized"] += amount
    return dict(result)
