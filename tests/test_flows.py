from datetime import date

import pytest

from networth.domain import Account, Category, ExchangeRate, Transaction
from networth.flows import Period, cumulative_flow, spending_by_category, trends
from networth.rates import ExchangeRateIndex
from networth.recursion import (
    by_account,
    by_category_tree,
    by_date_range,
    flatten_categories,
    top_level_of,
    totals_by_top_level,
)
from networth.segmentation import segment

ACCOUNTS = (
    Account("a1", "Checking"),
    Account("a2", "Savings"),
    Account("ext", "World", is_mine=False),
)

CATEGORIES = (
    Category("income", "Income", None, "income"),
    Category("salary", "Salary", "income", "income"),
    Category("fin", "Financial income", "income", "income"),
    Category("food", "Food", None, "expense"),
    Category("groceries", "Groceries", "food", "expense"),
    Category("restaurants", "Restaurants", "food", "expense"),
    Category("housing", "Housing", None, "expense"),
    Category("rent", "Rent", "housing", "expense"),
)


def tx(id, day, amount, sender=None, receiver=None, category=None, currency="eur", **kw):
    return Transaction(
        id, amount, currency, day, currency, amount,
        sender_account_id=sender, receiver_account_id=receiver, category_id=category, **kw,
    )


def desc(*transactions):
    return tuple(sorted(transactions, key=lambda t: t.date, reverse=True))


def flow_ledger():
    return desc(
        tx("salary", date(2025, 1, 3), 100, "ext", "a1", "salary"),
        tx("lunch", date(2025, 1, 5), 30, "a1", "ext", "restaurants"),
        tx("move", date(2025, 1, 6), 20, "a1", "a2"),
        tx("div", date(2025, 1, 7), 5, None, "a2", "fin", financial_income_currency_id="etf"),
    )


def test_cumulative_flow_runs_over_buckets():
    seg = segment(date(2025, 1, 1), date(2025, 1, 10))
    points = cumulative_flow(seg, flow_ledger(), ACCOUNTS, ExchangeRateIndex(), "eur")

    assert [d for d, _ in points] == seg.boundaries()
    by_day = dict(points)
    assert by_day[date(2025, 1, 2)] == 0
    assert by_day[date(2025, 1, 3)] == 100
    assert by_day[date(2025, 1, 5)] == 70
    assert by_day[date(2025, 1, 6)] == 70
    assert points[-1][1] == 75


def test_cumulative_flow_can_hide_financial_income():
    seg = segment(date(2025, 1, 1), date(2025, 1, 10))
    points = cumulative_flow(seg, flow_ledger(), ACCOUNTS, ExchangeRateIndex(), "eur", hide_financial_income=True)
    assert points[-1][1] == 70


def test_cumulative_flow_ignores_history_before_the_range():
    seg = segment(date(2025, 1, 5), date(2025, 1, 10))
    points = cumulative_flow(seg, flow_ledger(), ACCOUNTS, ExchangeRateIndex(), "eur")
    assert points[-1][1] == -25


def test_cumulative_flow_converts_foreign_legs():
    rates = ExchangeRateIndex([ExchangeRate("usd", "eur", "2025-01-01", 0.9)])
    transactions = desc(tx("usd-in", date(2025, 1, 3), 100, "ext", "a1", "salary", currency="usd"))
    seg = segment(date(2025, 1, 1), date(2025, 1, 5))
    points = cumulative_flow(seg, transactions, ACCOUNTS, rates, "eur")
    assert points[-1][1] == pytest.approx(90)


def test_spending_rolls_up_to_top_level_categories():
    transactions = (
        tx("g", date(2025, 2, 1), 30, "a1", "ext", "groceries"),
        tx("r", date(2025, 2, 2), 20, "a1", "ext", "restaurants"),
        tx("rent", date(2025, 2, 3), 100, "a1", "ext", "rent"),
        tx("in", date(2025, 2, 4), 500, "ext", "a1", "salary"),
        tx("own", date(2025, 2, 5), 40, "a1", "a2", "groceries"),
        tx("late", date(2025, 3, 5), 999, "a1", "ext", "groceries"),
        tx("nocat", date(2025, 2, 6), 7, "a1", "ext"),
    )
    totals = spending_by_category(
        transactions, CATEGORIES, ACCOUNTS, ExchangeRateIndex(), "eur",
        date(2025, 2, 1), date(2025, 2, 28),
    )
    assert totals == {"Food": 50, "Housing": 100}


def test_flatten_categories():
    names = [c.name for c in flatten_categories(CATEGORIES, "food")]
    assert names == ["Groceries", "Restaurants"]
    assert len(flatten_categories(CATEGORIES, None)) == len(CATEGORIES)


def test_top_level_of():
    index = {c.id: c for c in CATEGORIES}
    assert top_level_of(index, "groceries").id == "food"
    assert top_level_of(index, "food").id == "food"
    assert top_level_of(index, "missing") is None


def test_flatten_categories_survives_cycles():
    cats = (
        Category("a", "A", "b", "expense"),
        Category("b", "B", "a", "expense"),
    )
    assert [c.id for c in flatten_categories(cats, "a")] == ["b"]
    assert top_level_of({c.id: c for c in cats}, "a") is not None


def test_totals_by_top_level_keeps_unknown_ids():
    assert totals_by_top_level(CATEGORIES, {"ghost": 4, "rent": 1}) == {"Uncategorized": 4, "Housing": 1}


def test_filters():
    transactions = flow_ledger()
    in_range = list(filter(by_date_range(date(2025, 1, 4), date(2025, 1, 6)), transactions))
    assert {t.id for t in in_range} == {"lunch", "move"}

    savings = list(filter(by_account(["a2"]), transactions))
    assert {t.id for t in savings} == {"move", "div"}

    income = list(filter(by_category_tree(CATEGORIES, "income"), transactions))
    assert {t.id for t in income} == {"salary", "div"}


def trend_ledger():
    return desc(
        tx("rent", date(2025, 2, 1), 100, "a1", "ext", "rent"),
        tx("groceries", date(2025, 2, 10), 20, "a1", "ext", "groceries"),
        tx("salary", date(2025, 3, 3), 100, "ext", "a1", "salary"),
        tx("lunch", date(2025, 3, 5), 30, "a1", "ext", "restaurants"),
        tx("move", date(2025, 3, 6), 20, "a1", "a2"),
        tx("gift", date(2025, 3, 10), 15, "ext", "a2", "salary"),
        tx("next-rent", date(2025, 4, 2), 100, "a1", "ext", "rent"),
    )


def monthly(**kw):
    return trends(trend_ledger(), CATEGORIES, ACCOUNTS, ExchangeRateIndex(), "eur", date(2025, 3, 31), **kw)


def test_trends_of_a_category_subtree_per_month():
    points = monthly(category_id="food")
    assert len(points) == 12
    assert points[-2:] == [(date(2025, 2, 28), -20), (date(2025, 3, 31), -30)]
    assert all(total == 0 for _, total in points[:-2])


def test_trends_of_every_category_skip_uncategorized_moves():
    points = monthly()
    assert points[-2:] == [(date(2025, 2, 28), -120), (date(2025, 3, 31), 85)]


def test_trends_per_year():
    points = monthly(period=Period.YEARS, years=2)
    assert points == [(date(2024, 3, 31), 0), (date(2025, 3, 31), -35)]


def test_trends_restricted_to_accounts():
    points = monthly(account_ids=["a2"])
    assert points[-2:] == [(date(2025, 2, 28), 0), (date(2025, 3, 31), 15)]
