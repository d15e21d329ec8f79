from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from networth.domain import Account, Currency, Transaction

TOTAL = "Total"


class Grouping(str, Enum):
    ACCOUNT = "account"
    ACCOUNT_TYPE = "type"
    INSTITUTION = "financialInstitution"
    ACCOUNT_TOTAL = "none"
    CURRENCY = "currency"
    CURRENCY_RISK = "risk"
    CURRENCY_TYPE = "currencyType"
    CURRENCY_TOTAL = "currencyNone"

    @property
    def by_currency(self) -> bool:
        return self in CURRENCY_LABELS


ACCOUNT_LABELS: dict[Grouping, Callable[[Account], str]] = {
    Grouping.ACCOUNT: lambda a: a.name,
    Grouping.ACCOUNT_TYPE: lambda a: a.type or "Other",
    Grouping.INSTITUTION: lambda a: a.financial_institution or "Other",
    Grouping.ACCOUNT_TOTAL: lambda a: TOTAL,
}

CURRENCY_LABELS: dict[Grouping, Callable[[Currency], str]] = {
    Grouping.CURRENCY: lambda c: c.name,
    Grouping.CURRENCY_RISK: lambda c: c.risk or "Unknown",
    Grouping.CURRENCY_TYPE: lambda c: c.type or "Unknown",
    Grouping.CURRENCY_TOTAL: lambda c: TOTAL,
}


@dataclass(frozen=True)
class Grouper:
    """Maps the legs of a transaction (or an initial balance) to group labels."""

    grouping: Grouping
    accounts: Mapping[str, Account]
    currencies: Mapping[str, Currency]

    def _account_label(self, account_id: Optional[str]) -> str:
        return ACCOUNT_LABELS[self.grouping](self.accounts[account_id])

    def _currency_label(self, currency_id: Optional[str]) -> str:
        currency = self.currencies.get(currency_id) if currency_id is not None else None
        if currency is None:
            return TOTAL
        return CURRENCY_LABELS[self.grouping](currency)

    def initial_label(self, account: Account, currency_id: str) -> str:
        if self.grouping.by_currency:
            return self._currency_label(currency_id)
        return ACCOUNT_LABELS[self.grouping](account)

    def sender_label(self, t: Transaction) -> str:
        if self.grouping.by_currency:
            return self._currency_label(t.currency_id)
        return self._account_label(t.sender_account_id)

    def receiver_label(self, t: Transaction) -> str:
        if self.grouping.by_currency:
            return self._currency_label(t.receiver_currency_id)
        return self._account_label(t.receiver_account_id)

    def financial_income_label(self, t: Transaction) -> str:
        """Group whose principal a financial income gives back.

        By currency this is the investment currency the income is attributed
        to; by account it is the receiving group itself.
        """
        if self.grouping.by_currency:
            return self._currency_label(t.financial_income_currency_id)
        return self.receiver_label(t)
