"""Forward replay of transactions into per-group asset maps and book values.

Market value is what a group's holdings are worth in the reference currency on
a given day. Book value is the principal that went into the group: it moves on
inflows and outflows from outside the group, never on reallocations inside
it, and a financial income hands its amount back from the principal of the
investment it came from.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from networth.domain import Account, Transaction
from networth.grouping import Grouper
from networth.rates import ExchangeRateIndex


@dataclass
class GroupState:
    book_value: float = 0.0
    assets: dict[str, int] = field(default_factory=dict)

    def hold(self, currency_id: str, delta: int) -> None:
        self.assets[currency_id] = self.assets.get(currency_id, 0) + delta


LedgerState = dict[str, GroupState]


class LedgerReplayEngine:

    def __init__(
        self,
        grouper: Grouper,
        accounts: Iterable[Account],
        rates: ExchangeRateIndex,
        reference_currency_id: str,
    ):
        self.grouper = grouper
        self.accounts = tuple(a for a in accounts if a.is_mine)
        self.rates = rates
        self.reference_currency_id = reference_currency_id
        self._eligible = frozenset(a.id for a in self.accounts)

    def participates(self, account_id: str | None) -> bool:
        return account_id is not None and account_id in self._eligible

    def initial_state(self) -> LedgerState:
        state: LedgerState = {}
        for account in self.accounts:
            for balance in account.initial_balances:
                label = self.grouper.initial_label(account, balance.currency_id)
                state.setdefault(label, GroupState()).hold(balance.currency_id, balance.value)
        return state

    def market_value(self, group: GroupState, on: date) -> float:
        ref = self.reference_currency_id
        total = 0.0
        for currency_id, quantity in group.assets.items():
            if quantity == 0:
                continue
            total += quantity * self.rates.rate_at(currency_id, ref, on)
        return total

    def settle(self, state: LedgerState, on: date) -> None:
        """Take every group's current market value as its book value."""
        for group in state.values():
            group.book_value = self.market_value(group, on)

    def _inflow_value(self, t: Transaction, on: date) -> float:
        ref = self.reference_currency_id
        if t.receiver_currency_id == ref:
            return t.receiver_amount
        if t.currency_id == ref:
            return t.amount
        return t.receiver_amount * self.rates.rate_at(t.receiver_currency_id, ref, on)

    def _outflow_value(self, t: Transaction, on: date) -> float:
        ref = self.reference_currency_id
        if t.receiver_currency_id == ref:
            return t.receiver_amount
        if t.currency_id == ref:
            return t.amount
        return t.amount * self.rates.rate_at(t.currency_id, ref, on)

    def apply(self, state: LedgerState, t: Transaction, on: date, track_book_value: bool = True) -> None:
        receives = self.participates(t.receiver_account_id)
        sends = self.participates(t.sender_account_id)
        receiver_label = self.grouper.receiver_label(t) if receives else None
        sender_label = self.grouper.sender_label(t) if sends else None

        if receives:
            group = state.setdefault(receiver_label, GroupState())
            group.hold(t.receiver_currency_id, t.receiver_amount)

            if track_book_value and sender_label != receiver_label:
                change = self._inflow_value(t, on)
                group.book_value += change
                if t.is_financial_income:
                    source = state.setdefault(self.grouper.financial_income_label(t), GroupState())
                    source.book_value -= change

        if sends:
            group = state.setdefault(sender_label, GroupState())
            group.hold(t.currency_id, -t.amount)

            if track_book_value and receiver_label != sender_label and not t.is_financial_income:
                group.book_value -= self._outflow_value(t, on)
