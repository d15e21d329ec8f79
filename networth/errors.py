class ValuationError(Exception):
    """Base class for errors raised while valuing a ledger."""


class UnpricedCurrencyError(ValuationError, LookupError):
    """No exchange-rate observation exists for a currency pair."""

    def __init__(self, from_currency_id: str, to_currency_id: str):
        self.from_currency_id = from_currency_id
        self.to_currency_id = to_currency_id
        super().__init__(f"No exchange rate from {from_currency_id} to {to_currency_id}")

    def as_dict(self) -> dict:
        return {
            "error": "unpriced_currency",
            "message": str(self),
            "from_currency_id": self.from_currency_id,
            "to_currency_id": self.to_currency_id,
        }


class UnknownCurrencyError(ValuationError, KeyError):
    """A currency id is not part of the ledger snapshot."""

    def __init__(self, currency_id: str):
        self.currency_id = currency_id
        super().__init__(f"Unknown currency: {currency_id}")

    def __str__(self) -> str:
        return self.args[0]
