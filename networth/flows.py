"""Cash-flow views: running net flow per bucket, spending per category and
per-period trends of a category subtree."""
from collections import defaultdict
from datetime import date
from enum import Enum
from typing import Iterable, Optional, Sequence

from networth.domain import Account, Category, Transaction
from networth.rates import ExchangeRateIndex
from networth.recursion import by_account, by_category_tree, by_date_range, totals_by_top_level
from networth.segmentation import Section, Segmentation, Step, StepUnit


class Period(str, Enum):
    MONTHS = "months"
    YEARS = "years"


def _converted(quantity: int, currency_id: str, ref: str, rates: ExchangeRateIndex, on: date) -> float:
    if currency_id == ref:
        return float(quantity)
    return quantity * rates.rate_at(currency_id, ref, on)


def cumulative_flow(
    segmentation: Segmentation,
    transactions: Sequence[Transaction],
    accounts: Iterable[Account],
    rates: ExchangeRateIndex,
    reference_currency_id: str,
    hide_financial_income: bool = False,
) -> list[tuple[date, float]]:
    """Running sum of money entering minus money leaving owned accounts.

    Uncategorized transactions (internal moves) are ignored; each leg is
    converted at its own transaction date.
    """
    mine = frozenset(a.id for a in accounts if a.is_mine)
    points: list[tuple[date, float]] = []
    running = 0.0

    for section, up_to, items in segmentation.sweep(transactions):
        if section is Section.BEFORE:
            continue
        for t in items:
            if t.category_id is None:
                continue
            if hide_financial_income and t.is_financial_income:
                continue
            if t.sender_account_id in mine:
                running -= _converted(t.amount, t.currency_id, reference_currency_id, rates, t.date)
            if t.receiver_account_id in mine:
                running += _converted(
                    t.receiver_amount, t.receiver_currency_id, reference_currency_id, rates, t.date
                )
        points.append((up_to, running))
    return points


def spending_by_category(
    transactions: Iterable[Transaction],
    categories: tuple[Category, ...],
    accounts: Iterable[Account],
    rates: ExchangeRateIndex,
    reference_currency_id: str,
    start: date,
    end: date,
) -> dict[str, float]:
    """Money paid out of owned accounts to outside ones, per top-level category."""
    mine = frozenset(a.id for a in accounts if a.is_mine)
    in_range = by_date_range(start, end)
    totals: dict[str, float] = defaultdict(float)

    for t in filter(in_range, transactions):
        if t.category_id is None or t.sender_account_id not in mine:
            continue
        if t.receiver_account_id in mine:
            continue
        totals[t.category_id] += _converted(t.amount, t.currency_id, reference_currency_id, rates, t.date)

    return totals_by_top_level(categories, totals)


def trends(
    transactions: Sequence[Transaction],
    categories: tuple[Category, ...],
    accounts: Iterable[Account],
    rates: ExchangeRateIndex,
    reference_currency_id: str,
    today: date,
    category_id: Optional[str] = None,
    period: Period = Period.MONTHS,
    years: int = 1,
    account_ids: Optional[Iterable[str]] = None,
) -> list[tuple[date, float]]:
    """Net money in and out of owned accounts per month or year, ending at `today`.

    Only transactions filed under `category_id` or one of its descendants are
    counted (any categorized transaction when it is None). Each bucket covers
    the period that ends on its date.
    """
    period = Period(period)
    count = max(years, 1) * (12 if period is Period.MONTHS else 1)
    step = Step(StepUnit.MONTH, 1 if period is Period.MONTHS else 12)
    segmentation = Segmentation(step.back(today, count), today, step, count - 1, 1)

    mine = frozenset(a.id for a in accounts if a.is_mine)
    checks = [lambda t: t.category_id is not None]
    if category_id is not None:
        checks.append(by_category_tree(categories, category_id))
    if account_ids is not None:
        mine &= frozenset(account_ids)
        checks.append(by_account(mine))
    selected = tuple(t for t in transactions if all(check(t) for check in checks))

    points: list[tuple[date, float]] = []
    for section, up_to, items in segmentation.sweep(selected):
        if section is Section.BEFORE:
            continue
        total = 0.0
        for t in items:
            if t.receiver_account_id in mine:
                total += _converted(t.receiver_amount, t.receiver_currency_id, reference_currency_id, rates, t.date)
            if t.sender_account_id in mine:
                total -= _converted(t.amount, t.currency_id, reference_currency_id, rates, t.date)
        points.append((up_to, total))
    return points
