"""Point-in-time exchange rates built from explicit and transaction-implied observations.

Each ordered currency pair keeps its observations sorted ascending by date;
queries interpolate linearly between the surrounding observations and clamp
to the nearest one outside the observed span.
"""
from bisect import bisect_right
from collections import defaultdict
from datetime import date
from typing import Iterable

import pandas as pd
import structlog

from networth.domain import Currency, ExchangeRate, Transaction
from networth.errors import UnpricedCurrencyError
from networth.functional import Either, Left, Right

logger = structlog.get_logger(__name__)

Pair = tuple[str, str]


def implied_rates(transactions: Iterable[Transaction]) -> Iterable[ExchangeRate]:
    """Yield the two observations implied by every cross-currency transaction."""
    for t in transactions:
        if not t.crosses_currencies or t.amount == 0 or t.receiver_amount == 0:
            continue
        yield ExchangeRate(t.currency_id, t.receiver_currency_id, t.date, t.receiver_amount / t.amount)
        yield ExchangeRate(t.receiver_currency_id, t.currency_id, t.date, t.amount / t.receiver_amount)


def whole_unit_rate(rate: float, from_currency: Currency, to_currency: Currency) -> float:
    """Turn a rate between minor units into the rate between whole units."""
    return rate * 10 ** (from_currency.decimal_points - to_currency.decimal_points)


class ExchangeRateIndex:

    def __init__(self, observations: Iterable[ExchangeRate] = ()):
        grouped: dict[Pair, list[ExchangeRate]] = defaultdict(list)
        for obs in observations:
            grouped[(obs.from_currency_id, obs.to_currency_id)].append(obs)

        self._series: dict[Pair, tuple[ExchangeRate, ...]] = {}
        self._dates: dict[Pair, list[date]] = {}
        for pair, items in grouped.items():
            ordered = tuple(sorted(items, key=lambda r: r.date))
            self._series[pair] = ordered
            self._dates[pair] = [r.date for r in ordered]

        logger.debug(
            "rate_index_built",
            pairs=len(self._series),
            observations=sum(len(s) for s in self._series.values()),
        )

    @classmethod
    def build(
        cls,
        transactions: Iterable[Transaction],
        explicit: Iterable[ExchangeRate] = (),
    ) -> "ExchangeRateIndex":
        observations: list[ExchangeRate] = []
        for rate in explicit:
            observations.append(rate)
            observations.append(rate.inverse())
        observations.extend(implied_rates(transactions))
        return cls(observations)

    def pairs(self) -> tuple[Pair, ...]:
        return tuple(self._series)

    def observations(self, from_id: str, to_id: str) -> tuple[ExchangeRate, ...]:
        return self._series.get((from_id, to_id), ())

    def has_rate(self, from_id: str, to_id: str) -> bool:
        return from_id == to_id or (from_id, to_id) in self._series

    def rate_at(self, from_id: str, to_id: str, on: date) -> float:
        if from_id == to_id:
            return 1.0

        pair = (from_id, to_id)
        series = self._series.get(pair)
        if not series:
            raise UnpricedCurrencyError(from_id, to_id)

        before_index = max(bisect_right(self._dates[pair], on) - 1, 0)
        after_index = min(before_index + 1, len(series) - 1)
        before, after = series[before_index], series[after_index]
        if before_index == after_index:
            return before.rate

        span = (after.date - before.date).days
        if span <= 0:
            return before.rate
        ratio = (on - before.date).days / span
        ratio = min(max(ratio, 0.0), 1.0)
        return after.rate * ratio + before.rate * (1 - ratio)

    def try_rate_at(self, from_id: str, to_id: str, on: date) -> Either[dict, float]:
        try:
            return Right(self.rate_at(from_id, to_id, on))
        except UnpricedCurrencyError as exc:
            logger.warning("unpriced_currency", from_currency=from_id, to_currency=to_id)
            return Left(exc.as_dict())

    def monthly_history(self, from_id: str, to_id: str, until: date) -> list[tuple[date, float]]:
        """One interpolated rate per first-of-month, from the first observation to `until`."""
        series = self.observations(from_id, to_id)
        if from_id == to_id or not series:
            return []
        first = series[0].date.replace(day=1)
        months = pd.date_range(start=first, end=until, freq="MS")
        return [(m.date(), self.rate_at(from_id, to_id, m.date())) for m in months]
