from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

import structlog

from networth import memo
from networth.events import LEDGER_REPLACED, Event, LedgerStore
from networth.flows import Period, spending_by_category, trends
from networth.errors import UnpricedCurrencyError
from networth.functional import Either, Left, Right, validate_transaction
from networth.geometry import ChartLayout, Offset, layout
from networth.grouping import Grouping
from networth.memo import ChartRequest
from networth.performance import gain_series, investment_accounts
from networth.transforms import LedgerSnapshot, account_balances, converted_balance
from networth.valuation import BaselineMode, Scale, Series, Side, floor_for, share_of_total

logger = structlog.get_logger(__name__)

Validator = Callable[[LedgerSnapshot], Sequence[str]]


@dataclass(frozen=True)
class Versioned:
    """A computed value tagged with the snapshot version it came from."""

    value: Any
    version: int


def unknown_references(snapshot: LedgerSnapshot) -> list[str]:
    accounts, currencies = snapshot.account_index, snapshot.currency_index
    messages = []
    for t in snapshot.transactions:
        checked = validate_transaction(t, accounts, currencies)
        if checked.is_left():
            messages.append(checked.get_error()["message"])
    return messages


def unpriced_holdings(snapshot: LedgerSnapshot, reference_currency_id: str) -> list[str]:
    held = {b.currency_id for a in snapshot.accounts for b in a.initial_balances}
    held |= {t.currency_id for t in snapshot.transactions}
    held |= {t.receiver_currency_id for t in snapshot.transactions}
    rates = snapshot.rates
    return [
        f"No exchange rate from {currency_id} to {reference_currency_id}"
        for currency_id in sorted(held)
        if not rates.has_rate(currency_id, reference_currency_id)
    ]


class ValuationService:
    """Entry point for everything the dashboard draws.

    validators: functions taking a snapshot and returning messages; they are
    run by `data_quality_report`, and an exception raised by one of them is
    recorded as a message instead of aborting the report.
    """

    def __init__(self, store: LedgerStore, validators: Sequence[Validator] = (unknown_references,)):
        self.store = store
        self.validators = validators
        store.bus.subscribe(LEDGER_REPLACED, self._on_replaced)

    def _on_replaced(self, event: Event, payload: dict) -> dict:
        memo.clear()
        return {"cleared": True, "version": payload.get("version")}

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self.store.snapshot

    def net_worth(self, request: ChartRequest, scale: Scale = Scale.ABSOLUTE) -> Versioned:
        snapshot = self.snapshot
        series = memo.net_worth_series(snapshot, request)
        if Scale(scale) is Scale.RELATIVE:
            series = share_of_total(series)
        return Versioned(series, snapshot.version)

    def chart_layout(
        self,
        request: ChartRequest,
        scale: Scale = Scale.ABSOLUTE,
        baseline_mode: BaselineMode = BaselineMode.NONE,
        group_order: Optional[Sequence[str]] = None,
        reverse: bool = False,
        nice: bool = True,
        width: float = 1000,
        height: float = 1000,
    ) -> Versioned:
        snapshot = self.snapshot
        series: Series = memo.net_worth_series(snapshot, request)
        scale = Scale(scale)
        baseline_mode = BaselineMode(baseline_mode)
        chart: ChartLayout = layout(
            series,
            group_order=group_order,
            offset=Offset.EXPAND if scale is Scale.RELATIVE else Offset.NORMAL,
            floor=floor_for(series, scale, baseline_mode),
            nice=nice,
            baseline_mode=baseline_mode,
            reverse=reverse,
            width=width,
            height=height,
        )
        return Versioned((chart, series), snapshot.version)

    def rate_at(self, from_id: str, to_id: str, on: date) -> float:
        return self.snapshot.rates.rate_at(from_id, to_id, on)

    def try_rate_at(self, from_id: str, to_id: str, on: date) -> Either[dict, float]:
        return self.snapshot.rates.try_rate_at(from_id, to_id, on)

    def rate_history(self, from_id: str, to_id: str, until: date) -> list[tuple[date, float]]:
        return self.snapshot.rates.monthly_history(from_id, to_id, until)

    def cash_flow(self, request: ChartRequest, hide_financial_income: bool = False) -> Versioned:
        snapshot = self.snapshot
        points = memo.flow_series(snapshot, request, hide_financial_income)
        return Versioned(list(points), snapshot.version)

    def spending(self, request: ChartRequest) -> Versioned:
        snapshot = self.snapshot
        totals = spending_by_category(
            snapshot.transactions,
            snapshot.categories,
            snapshot.accounts,
            snapshot.rates,
            request.reference_currency_id,
            request.start,
            request.end,
        )
        return Versioned(totals, snapshot.version)

    def balances(self, reference_currency_id: str, on: date) -> Versioned:
        """Per-account holdings plus their value in the reference currency."""
        snapshot = self.snapshot
        result = {}
        for account_id, holdings in account_balances(snapshot, on).items():
            result[account_id] = {
                "holdings": holdings,
                "value": _try_converted(holdings, snapshot, reference_currency_id, on),
            }
        return Versioned(result, snapshot.version)

    def net_worth_total(self, reference_currency_id: str, on: date) -> Versioned:
        """Value of every owned account, or a Left naming the ones without a rate.

        A partial sum is never returned as the total.
        """
        balances = self.balances(reference_currency_id, on)
        accounts = self.snapshot.account_index
        total = 0.0
        unpriced: dict[str, dict] = {}
        for account_id, b in balances.value.items():
            if not accounts[account_id].is_mine:
                continue
            if b["value"].is_left():
                unpriced[account_id] = b["value"].get_error()
            else:
                total += b["value"].get_or_else(0.0)

        if not unpriced:
            return Versioned(Right(total), balances.version)

        currency_ids = sorted({e["from_currency_id"] for e in unpriced.values()})
        logger.warning("net_worth_unpriced", accounts=sorted(unpriced), currencies=currency_ids)
        return Versioned(Left({
            "error": "unpriced_currency",
            "message": f"No exchange rate to {reference_currency_id} for {', '.join(currency_ids)}",
            "account_ids": sorted(unpriced),
            "currency_ids": currency_ids,
            "partial_total": total,
        }), balances.version)

    def investment_gain(self, request: ChartRequest) -> Versioned:
        """Market minus book value of the owned non-credit accounts, per bucket."""
        snapshot = self.snapshot
        owned = frozenset(a.id for a in investment_accounts(snapshot.accounts))
        if request.account_ids is not None:
            owned &= request.account_ids
        total = replace(request, grouping=Grouping.ACCOUNT_TOTAL, side=Side.ACTIVE, account_ids=owned)
        series = memo.net_worth_series(snapshot, total)
        return Versioned(gain_series(series), snapshot.version)

    def currency_performance(self, request: ChartRequest, currency_ids: Optional[Iterable[str]] = None) -> Versioned:
        """Relative rate of each currency; defaults to the ones owned accounts hold."""
        snapshot = self.snapshot
        if currency_ids is None:
            currency_ids = held_currencies(snapshot)
        series = memo.performance_series(snapshot, request, tuple(currency_ids))
        return Versioned(series, snapshot.version)

    def trends(
        self,
        reference_currency_id: str,
        today: date,
        category_id: Optional[str] = None,
        period: Period = Period.MONTHS,
        years: int = 1,
        account_ids: Optional[Iterable[str]] = None,
    ) -> Versioned:
        snapshot = self.snapshot
        snapshot.currency(reference_currency_id)
        points = trends(
            snapshot.transactions,
            snapshot.categories,
            snapshot.accounts,
            snapshot.rates,
            reference_currency_id,
            today,
            category_id=category_id,
            period=period,
            years=years,
            account_ids=account_ids,
        )
        return Versioned(points, snapshot.version)

    def data_quality_report(self, extra: Sequence[Validator] = ()) -> Dict[str, Any]:
        """Run validators and return a report with every message they produced."""
        snapshot = self.snapshot
        report = {"version": snapshot.version, "validation": [], "ok": True}

        for v in list(self.validators) + list(extra):
            try:
                msgs = v(snapshot)
            except Exception as e:
                logger.warning("validator_failed", validator=getattr(v, "__name__", str(v)), error=str(e))
                msgs = [f"validator_error: {e}"]
            report["validation"].append({"validator": getattr(v, "__name__", str(v)), "messages": list(msgs)})
            if msgs:
                report["ok"] = False

        return report


def _try_converted(holdings, snapshot, reference_currency_id, on) -> Either[dict, float]:
    try:
        return Right(converted_balance(holdings, snapshot.rates, reference_currency_id, on))
    except UnpricedCurrencyError as exc:
        return Left(exc.as_dict())


def held_currencies(snapshot: LedgerSnapshot) -> list[str]:
    """Currencies any owned account currently holds a positive amount of."""
    accounts = snapshot.account_index
    held = set()
    for account_id, holdings in account_balances(snapshot).items():
        if accounts[account_id].is_mine:
            held |= {c for c, quantity in holdings.items() if quantity > 0}
    return sorted(held)
