"""Investment views built on the valuation series.

The gain line is the market value of owned investment accounts minus the
principal put into them. Currency performance compares each currency's rate
against the reference currency with the rate at the start of the range, and
counts the financial income a currency paid out as part of its performance.
"""
from datetime import date
from typing import Iterable, Mapping, Sequence

import structlog

from networth.domain import Account, Currency, Transaction
from networth.functional import safe_currency
from networth.rates import ExchangeRateIndex
from networth.segmentation import Section, Segmentation
from networth.valuation import Bucket, GroupValue, Series

logger = structlog.get_logger(__name__)

CREDIT_CARD_TYPES = frozenset({"credit", "credit card"})


def investment_accounts(accounts: Iterable[Account]) -> tuple[Account, ...]:
    """Owned accounts that hold investments, i.e. everything but credit cards."""
    return tuple(
        a for a in accounts
        if a.is_mine and (a.type or "").lower() not in CREDIT_CARD_TYPES
    )


def gain_series(series: Series) -> list[tuple[date, float]]:
    """Per bucket, how far the market value of every group sits above its book value."""
    return [(b.date, sum(v.gain for v in b.values.values())) for b in series.buckets]


def currency_label(currencies: Mapping[str, Currency], currency_id: str) -> str:
    return safe_currency(currencies, currency_id).map(lambda c: c.name).get_or_else("Unknown")


def _income_in(t: Transaction, currency_id: str, rates: ExchangeRateIndex) -> float:
    """What a financial income is worth in units of the currency that paid it."""
    if t.receiver_currency_id == currency_id:
        return t.receiver_amount
    if t.currency_id == currency_id:
        return t.amount
    return t.receiver_amount * rates.rate_at(t.receiver_currency_id, currency_id, t.date)


def currency_performance(
    segmentation: Segmentation,
    transactions: Sequence[Transaction],
    accounts: Iterable[Account],
    currencies: Mapping[str, Currency],
    rates: ExchangeRateIndex,
    reference_currency_id: str,
    selected: Iterable[str],
) -> Series:
    """Rate of each selected currency relative to its rate on the first bucket.

    Every financial income attributed to a currency and received by an owned
    account shrinks that currency's divisor by the share of the holdings it
    represents, so 1.0 means no change and 1.1 a ten percent gain.
    """
    chosen = tuple(dict.fromkeys(c for c in selected if c != reference_currency_id))
    accounts = tuple(accounts)
    mine = frozenset(a.id for a in accounts if a.is_mine)

    held = {c: 0 for c in chosen}
    divisor = {c: 1.0 for c in chosen}
    for account in accounts:
        if account.id not in mine:
            continue
        for balance in account.initial_balances:
            if balance.currency_id in held:
                held[balance.currency_id] += balance.value

    labels = {c: currency_label(currencies, c) for c in chosen}
    initial: dict[str, float] = {}
    buckets: list[Bucket] = []

    for section, up_to, items in segmentation.sweep(transactions):
        for t in items:
            if t.receiver_account_id in mine and t.receiver_currency_id in held:
                held[t.receiver_currency_id] += t.receiver_amount
            if t.sender_account_id in mine and t.currency_id in held:
                held[t.currency_id] -= t.amount

            if section is Section.BEFORE:
                continue
            source = t.financial_income_currency_id
            if source in held and t.receiver_account_id in mine and held[source] != 0:
                divisor[source] *= (held[source] - _income_in(t, source, rates)) / held[source]

        if section is Section.BEFORE:
            continue
        if not initial:
            initial = {c: rates.rate_at(c, reference_currency_id, up_to) for c in chosen}

        values = {}
        for c in chosen:
            would_be = divisor[c] * initial[c]
            if would_be == 0:
                continue
            values[labels[c]] = GroupValue(rates.rate_at(c, reference_currency_id, up_to) / would_be)
        buckets.append(Bucket(up_to, values))

    logger.info("currency_performance", currencies=len(chosen), buckets=len(buckets))
    return Series(tuple(buckets), frozenset(labels.values()), segmentation.label_every)
