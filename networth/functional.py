from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Callable, Mapping
from networth.domain import Account, Currency, Transaction

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()

    @staticmethod
    def of(value) -> 'Maybe':
        return Nothing() if value is None else Some(value)


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Maybe.of(f(self._value))

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return self

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    def is_left(self) -> bool:
        return not self.is_right()

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self._value))

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Right holds no error")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return self

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def safe_currency(currencies: Mapping[str, Currency], currency_id: str | None) -> Maybe[Currency]:
    if currency_id is None:
        return Nothing()
    return Maybe.of(currencies.get(currency_id))


def _check_account(
    accounts: Mapping[str, Account], account_id: str | None, role: str
) -> Either[dict, str | None]:
    if account_id is None or account_id in accounts:
        return Right(account_id)
    return Left({
        "error": "account_not_found",
        "message": f"{role.capitalize()} account {account_id} does not exist",
        "account_id": account_id,
    })


def _check_currency(
    currencies: Mapping[str, Currency], currency_id: str | None, role: str
) -> Either[dict, str | None]:
    if currency_id is None or safe_currency(currencies, currency_id).is_some():
        return Right(currency_id)
    return Left({
        "error": "currency_not_found",
        "message": f"{role.capitalize()} currency {currency_id} does not exist",
        "currency_id": currency_id,
    })


def validate_transaction(
    t: Transaction,
    accounts: Mapping[str, Account],
    currencies: Mapping[str, Currency],
) -> Either[dict, Transaction]:
    """Check that every id a transaction refers to is known to the ledger."""
    checks = (
        lambda _: _check_account(accounts, t.sender_account_id, "sender"),
        lambda _: _check_account(accounts, t.receiver_account_id, "receiver"),
        lambda _: _check_currency(currencies, t.currency_id, "sent"),
        lambda _: _check_currency(currencies, t.receiver_currency_id, "received"),
        lambda _: _check_currency(currencies, t.financial_income_currency_id, "financial income"),
    )
    result: Either[dict, object] = Right(t)
    for check in checks:
        result = result.bind(check)
    if result.is_left():
        return Left({**result.get_error(), "transaction_id": t.id})

    if t.currency_id == t.receiver_currency_id and t.amount != t.receiver_amount:
        return Left({
            "error": "amount_mismatch",
            "message": f"Transaction {t.id} moves {t.amount} but delivers {t.receiver_amount} of the same currency",
            "transaction_id": t.id,
        })
    return Right(t)
