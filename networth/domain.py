from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union


DateLike = Union[date, datetime, str]


def to_date(value: DateLike) -> date:
    """Coerce an ISO string, datetime or date into a plain date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


@dataclass(frozen=True)
class Currency:
    id: str
    name: str
    symbol: str = ""
    decimal_points: int = 2
    type: str = ""   # e.g. "fiat", "stock", "crypto"
    risk: str = ""   # e.g. "low", "high"


@dataclass(frozen=True)
class InitialBalance:
    currency_id: str
    value: int       # minor units, as of ledger epoch


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    is_mine: bool = True
    initial_balances: tuple[InitialBalance, ...] = ()
    type: Optional[str] = None
    financial_institution: Optional[str] = None


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    parent_id: Optional[str]
    type: str                 # "income" or "expense"


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    FINANCIAL_INCOME = "financialIncome"


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: int                  # sent quantity, minor units of currency_id
    currency_id: str
    date: date
    receiver_currency_id: str
    receiver_amount: int         # received quantity, minor units of receiver_currency_id
    sender_account_id: Optional[str] = None
    receiver_account_id: Optional[str] = None
    category_id: Optional[str] = None
    financial_income_currency_id: Optional[str] = None
    owner: str = ""
    note: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", to_date(self.date))
        if self.amount < 0 or self.receiver_amount < 0:
            raise ValueError(f"Transaction {self.id} has a negative amount")
        if self.sender_account_id is None and self.receiver_account_id is None:
            raise ValueError(f"Transaction {self.id} has neither sender nor receiver")

    @property
    def kind(self) -> TransactionKind:
        if self.financial_income_currency_id is not None:
            return TransactionKind.FINANCIAL_INCOME
        if self.sender_account_id is None:
            return TransactionKind.INCOME
        if self.receiver_account_id is None:
            return TransactionKind.EXPENSE
        return TransactionKind.TRANSFER

    @property
    def is_financial_income(self) -> bool:
        return self.financial_income_currency_id is not None

    @property
    def crosses_currencies(self) -> bool:
        return self.currency_id != self.receiver_currency_id


@dataclass(frozen=True)
class ExchangeRate:
    from_currency_id: str
    to_currency_id: str
    date: date
    rate: float      # minor units of `to` per minor unit of `from`

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", to_date(self.date))
        if self.rate <= 0:
            raise ValueError(
                f"Rate {self.from_currency_id}->{self.to_currency_id} must be positive"
            )

    def inverse(self) -> "ExchangeRate":
        return ExchangeRate(self.to_currency_id, self.from_currency_id, self.date, 1 / self.rate)
