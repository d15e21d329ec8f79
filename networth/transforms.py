import json
from dataclasses import dataclass
from datetime import date
from functools import cached_property, reduce
from typing import Iterable, Tuple

from networth.domain import (
    Account,
    Category,
    Currency,
    ExchangeRate,
    InitialBalance,
    Transaction,
)
from networth.errors import UnknownCurrencyError
from networth.rates import ExchangeRateIndex


@dataclass(frozen=True, eq=False)
class LedgerSnapshot:
    """Immutable view of the whole ledger.

    Transactions are kept sorted date-descending, which is what the sweep
    expects. Snapshots compare and hash by identity so they can key caches.
    """

    currencies: Tuple[Currency, ...]
    accounts: Tuple[Account, ...]
    categories: Tuple[Category, ...]
    transactions: Tuple[Transaction, ...]
    exchange_rates: Tuple[ExchangeRate, ...] = ()
    version: int = 0

    @classmethod
    def build(
        cls,
        currencies: Iterable[Currency],
        accounts: Iterable[Account],
        categories: Iterable[Category],
        transactions: Iterable[Transaction],
        exchange_rates: Iterable[ExchangeRate] = (),
        version: int = 0,
    ) -> "LedgerSnapshot":
        ordered = tuple(sorted(transactions, key=lambda t: t.date, reverse=True))
        return cls(
            tuple(currencies),
            tuple(accounts),
            tuple(categories),
            ordered,
            tuple(exchange_rates),
            version,
        )

    @property
    def currency_index(self) -> dict[str, Currency]:
        return {c.id: c for c in self.currencies}

    @property
    def account_index(self) -> dict[str, Account]:
        return {a.id: a for a in self.accounts}

    def currency(self, currency_id: str) -> Currency:
        for c in self.currencies:
            if c.id == currency_id:
                return c
        raise UnknownCurrencyError(currency_id)

    @cached_property
    def rates(self) -> ExchangeRateIndex:
        return ExchangeRateIndex.build(self.transactions, self.exchange_rates)

    @property
    def first_date(self) -> date | None:
        return self.transactions[-1].date if self.transactions else None

    @property
    def last_date(self) -> date | None:
        return self.transactions[0].date if self.transactions else None

    def with_transactions(self, transactions: Iterable[Transaction], version: int | None = None) -> "LedgerSnapshot":
        return LedgerSnapshot.build(
            self.currencies,
            self.accounts,
            self.categories,
            transactions,
            self.exchange_rates,
            self.version if version is None else version,
        )


def _account(data: dict) -> Account:
    balances = tuple(InitialBalance(**b) for b in data.get("initial_balances", ()))
    return Account(**{**data, "initial_balances": balances})


def load_seed(path: str) -> Tuple[LedgerSnapshot, str]:
    """Read a JSON seed file; returns the snapshot and its reference currency id."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    currencies = tuple(Currency(**c) for c in data["currencies"])
    accounts = tuple(_account(a) for a in data["accounts"])
    categories = tuple(Category(**c) for c in data.get("categories", ()))
    transactions = tuple(Transaction(**t) for t in data["transactions"])
    rates = tuple(ExchangeRate(**r) for r in data.get("exchange_rates", ()))

    snapshot = LedgerSnapshot.build(currencies, accounts, categories, transactions, rates)
    return snapshot, data.get("reference_currency", currencies[0].id)


def remove_transaction(trans: Tuple[Transaction, ...], transaction_id: str) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.id != transaction_id, trans))


def account_balances(snapshot: LedgerSnapshot, until: date | None = None) -> dict[str, dict[str, int]]:
    """Current holdings per account and currency: initial balances plus every leg."""

    def step(acc: dict, t: Transaction) -> dict:
        if until is not None and t.date > until:
            return acc
        if t.sender_account_id in acc:
            holdings = acc[t.sender_account_id]
            holdings[t.currency_id] = holdings.get(t.currency_id, 0) - t.amount
        if t.receiver_account_id in acc:
            holdings = acc[t.receiver_account_id]
            holdings[t.receiver_currency_id] = holdings.get(t.receiver_currency_id, 0) + t.receiver_amount
        return acc

    initial = {
        a.id: {b.currency_id: b.value for b in a.initial_balances}
        for a in snapshot.accounts
    }
    return reduce(step, snapshot.transactions, initial)


def converted_balance(
    holdings: dict[str, int],
    rates: ExchangeRateIndex,
    reference_currency_id: str,
    on: date,
) -> float:
    return sum(
        quantity * rates.rate_at(currency_id, reference_currency_id, on)
        for currency_id, quantity in holdings.items()
        if quantity != 0
    )
