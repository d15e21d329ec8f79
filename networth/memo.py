from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Optional

from networth.domain import to_date
from networth.flows import cumulative_flow
from networth.grouping import Grouper, Grouping
from networth.performance import currency_performance
from networth.replay import LedgerReplayEngine
from networth.segmentation import Density, segment
from networth.transforms import LedgerSnapshot
from networth.valuation import Series, Side, aggregate


@dataclass(frozen=True)
class ChartRequest:
    start: date
    end: date
    reference_currency_id: str
    grouping: Grouping = Grouping.ACCOUNT_TOTAL
    density: Density = Density.LIGHT
    side: Side = Side.ACTIVE
    account_ids: Optional[frozenset] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", to_date(self.start))
        object.__setattr__(self, "end", to_date(self.end))
        object.__setattr__(self, "grouping", Grouping(self.grouping))
        object.__setattr__(self, "density", Density(self.density))
        object.__setattr__(self, "side", Side(self.side))
        if self.account_ids is not None:
            object.__setattr__(self, "account_ids", frozenset(self.account_ids))


def _accounts(snapshot: LedgerSnapshot, request: ChartRequest) -> tuple:
    snapshot.currency(request.reference_currency_id)
    return tuple(
        a for a in snapshot.accounts
        if request.account_ids is None or a.id in request.account_ids
    )


def _engine(snapshot: LedgerSnapshot, request: ChartRequest) -> LedgerReplayEngine:
    accounts = _accounts(snapshot, request)
    grouper = Grouper(request.grouping, snapshot.account_index, snapshot.currency_index)
    return LedgerReplayEngine(grouper, accounts, snapshot.rates, request.reference_currency_id)


@lru_cache(maxsize=64)
def net_worth_series(snapshot: LedgerSnapshot, request: ChartRequest) -> Series:
    segmentation = segment(request.start, request.end, request.density)
    return aggregate(segmentation, snapshot.transactions, _engine(snapshot, request), request.side)


@lru_cache(maxsize=64)
def flow_series(snapshot: LedgerSnapshot, request: ChartRequest, hide_financial_income: bool = False) -> tuple:
    accounts = _accounts(snapshot, request)
    segmentation = segment(request.start, request.end, request.density)
    return tuple(cumulative_flow(
        segmentation,
        snapshot.transactions,
        accounts,
        snapshot.rates,
        request.reference_currency_id,
        hide_financial_income,
    ))


@lru_cache(maxsize=64)
def performance_series(snapshot: LedgerSnapshot, request: ChartRequest, currency_ids: tuple) -> Series:
    segmentation = segment(request.start, request.end, request.density)
    return currency_performance(
        segmentation,
        snapshot.transactions,
        _accounts(snapshot, request),
        snapshot.currency_index,
        snapshot.rates,
        request.reference_currency_id,
        currency_ids,
    )


def clear() -> None:
    net_worth_series.cache_clear()
    flow_series.cache_clear()
    performance_series.cache_clear()
