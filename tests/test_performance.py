from datetime import date

import pytest

from networth import memo
from networth.domain import Account, Currency, ExchangeRate, InitialBalance, Transaction
from networth.errors import UnpricedCurrencyError
from networth.events import LedgerStore
from networth.memo import ChartRequest
from networth.performance import (
    currency_label,
    currency_performance,
    gain_series,
    investment_accounts,
)
from networth.rates import ExchangeRateIndex
from networth.segmentation import segment
from networth.services import ValuationService, held_currencies
from networth.transforms import LedgerSnapshot
from networth.valuation import Bucket, GroupValue, Series

CURRENCIES = {
    "eur": Currency("eur", "Euro"),
    "usd": Currency("usd", "US Dollar"),
    "etf": Currency("etf", "World ETF", decimal_points=0),
}

DOUBLING_DOLLAR = [
    ExchangeRate("usd", "eur", "2025-01-01", 1.0),
    ExchangeRate("usd", "eur", "2025-01-11", 2.0),
]


def investor():
    return (
        Account("inv", "Broker", initial_balances=(InitialBalance("usd", 100),), type="investment"),
        Account("card", "Card", initial_balances=(InitialBalance("usd", -10),), type="Credit Card"),
        Account("ext", "World", is_mine=False),
    )


def test_investment_accounts_skip_credit_cards_and_outsiders():
    accounts = investor() + (Account("c2", "Other card", type="credit"),)
    assert [a.id for a in investment_accounts(accounts)] == ["inv"]


def test_gain_series_sums_group_gains():
    series = Series(
        (
            Bucket(date(2025, 1, 1), {"A": GroupValue(100, 100)}, 100),
            Bucket(date(2025, 1, 2), {"A": GroupValue(120, 100), "B": GroupValue(50, 60)}, 160),
        ),
        frozenset({"A", "B"}),
    )
    assert gain_series(series) == [(date(2025, 1, 1), 0), (date(2025, 1, 2), 10)]
    assert gain_series(Series((), frozenset())) == []


def test_currency_label_falls_back_to_unknown():
    assert currency_label(CURRENCIES, "usd") == "US Dollar"
    assert currency_label(CURRENCIES, "xyz") == "Unknown"


def test_performance_follows_the_rate():
    accounts = (Account("a", "A", initial_balances=(InitialBalance("usd", 100),)),)
    seg = segment(date(2025, 1, 1), date(2025, 1, 11))

    series = currency_performance(seg, (), accounts, CURRENCIES, ExchangeRateIndex(DOUBLING_DOLLAR), "eur", ["usd", "eur"])

    assert series.groups == {"US Dollar"}
    assert len(series.buckets) == seg.bucket_count
    assert series.buckets[0].values["US Dollar"].amount == pytest.approx(1.0)
    assert series.buckets[-1].values["US Dollar"].amount == pytest.approx(2.0)


def test_financial_income_counts_towards_performance():
    accounts = (Account("a", "A", initial_balances=(InitialBalance("etf", 10),)),)
    rates = ExchangeRateIndex.build((), [ExchangeRate("etf", "eur", "2025-01-01", 100)])
    dividend = Transaction(
        "d", 100, "eur", date(2025, 1, 5), "eur", 100,
        receiver_account_id="a", financial_income_currency_id="etf",
    )
    seg = segment(date(2025, 1, 1), date(2025, 1, 10))

    series = currency_performance(seg, (dividend,), accounts, CURRENCIES, rates, "eur", ["etf"])

    by_date = {b.date: b.values["World ETF"].amount for b in series.buckets}
    assert by_date[date(2025, 1, 4)] == pytest.approx(1.0)
    # one unit's worth paid out of ten held
    assert by_date[date(2025, 1, 5)] == pytest.approx(10 / 9)
    assert by_date[date(2025, 1, 10)] == pytest.approx(10 / 9)


def test_financial_income_before_the_range_is_ignored():
    accounts = (Account("a", "A", initial_balances=(InitialBalance("etf", 10),)),)
    rates = ExchangeRateIndex.build((), [ExchangeRate("etf", "eur", "2024-01-01", 100)])
    dividend = Transaction(
        "d", 100, "eur", date(2024, 6, 1), "eur", 100,
        receiver_account_id="a", financial_income_currency_id="etf",
    )
    seg = segment(date(2025, 1, 1), date(2025, 1, 10))
    series = currency_performance(seg, (dividend,), accounts, CURRENCIES, rates, "eur", ["etf"])
    assert all(b.values["World ETF"].amount == pytest.approx(1.0) for b in series.buckets)


def test_performance_of_an_unpriced_currency_raises():
    seg = segment(date(2025, 1, 1), date(2025, 1, 10))
    with pytest.raises(UnpricedCurrencyError):
        currency_performance(seg, (), (), CURRENCIES, ExchangeRateIndex(), "eur", ["usd"])


def investor_service():
    memo.clear()
    snapshot = LedgerSnapshot.build(
        currencies=tuple(CURRENCIES.values()),
        accounts=investor(),
        categories=(),
        transactions=(),
        exchange_rates=tuple(DOUBLING_DOLLAR),
    )
    return ValuationService(LedgerStore(snapshot))


def test_investment_gain_leaves_credit_cards_out():
    svc = investor_service()
    points = svc.investment_gain(ChartRequest("2025-01-03", "2025-01-11", "eur")).value

    assert points[0] == (date(2025, 1, 2), pytest.approx(10))
    assert points[-1] == (date(2025, 1, 11), pytest.approx(100))


def test_currency_performance_defaults_to_held_currencies():
    svc = investor_service()
    assert held_currencies(svc.snapshot) == ["usd"]

    series = svc.currency_performance(ChartRequest("2025-01-01", "2025-01-11", "eur")).value
    assert series.groups == {"US Dollar"}
    assert series.buckets[-1].values["US Dollar"].amount == pytest.approx(2.0)
