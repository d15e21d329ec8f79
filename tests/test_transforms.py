from datetime import date
from pathlib import Path

import pytest

from networth.domain import Account, Currency, ExchangeRate, InitialBalance, Transaction
from networth.errors import UnknownCurrencyError
from networth.grouping import Grouper, Grouping
from networth.replay import LedgerReplayEngine
from networth.segmentation import Density, segment
from networth.services import unknown_references, unpriced_holdings
from networth.transforms import (
    LedgerSnapshot,
    account_balances,
    converted_balance,
    load_seed,
    remove_transaction,
)
from networth.valuation import Side, aggregate

SEED = Path(__file__).resolve().parent.parent / "data" / "seed.json"


def tx(id, day, amount=10, sender="a1", receiver="a2", currency="eur"):
    return Transaction(id, amount, currency, day, currency, amount, sender_account_id=sender, receiver_account_id=receiver)


def small_snapshot():
    return LedgerSnapshot.build(
        currencies=(Currency("eur", "Euro"), Currency("usd", "US Dollar")),
        accounts=(
            Account("a1", "One", initial_balances=(InitialBalance("eur", 100), InitialBalance("usd", 50))),
            Account("a2", "Two"),
        ),
        categories=(),
        transactions=(tx("t2", "2025-01-05"), tx("t1", "2025-01-01"), tx("t3", "2025-02-01", 5, "a2", "a1")),
        exchange_rates=(ExchangeRate("usd", "eur", "2025-01-01", 0.5),),
    )


def test_build_sorts_transactions_newest_first():
    snapshot = small_snapshot()
    assert [t.id for t in snapshot.transactions] == ["t3", "t2", "t1"]
    assert snapshot.first_date == date(2025, 1, 1)
    assert snapshot.last_date == date(2025, 2, 1)


def test_snapshots_compare_by_identity():
    a, b = small_snapshot(), small_snapshot()
    assert a != b
    assert len({a, b}) == 2
    assert a == a


def test_rate_index_is_built_once_per_snapshot():
    snapshot = small_snapshot()
    assert snapshot.rates is snapshot.rates
    assert snapshot.rates.rate_at("usd", "eur", date(2025, 1, 1)) == 0.5


def test_unknown_currency():
    with pytest.raises(UnknownCurrencyError):
        small_snapshot().currency("gbp")
    with pytest.raises(KeyError):
        small_snapshot().currency("gbp")


def test_remove_transaction_returns_a_new_tuple():
    trans = (tx("t1", "2025-01-01"), tx("t2", "2025-01-02"))
    assert [t.id for t in remove_transaction(trans, "t1")] == ["t2"]
    assert len(trans) == 2


def test_with_transactions_resorts():
    snapshot = small_snapshot()
    updated = snapshot.with_transactions(snapshot.transactions + (tx("t0", "2024-12-01"),))
    assert updated.transactions[-1].id == "t0"
    assert updated.version == snapshot.version


def test_account_balances():
    balances = account_balances(small_snapshot())
    assert balances["a1"] == {"eur": 85, "usd": 50}
    assert balances["a2"] == {"eur": 15}

    earlier = account_balances(small_snapshot(), until=date(2025, 1, 2))
    assert earlier["a1"] == {"eur": 90, "usd": 50}


def test_converted_balance():
    snapshot = small_snapshot()
    holdings = account_balances(snapshot)["a1"]
    assert converted_balance(holdings, snapshot.rates, "eur", date(2025, 1, 1)) == pytest.approx(110)


def test_load_seed():
    snapshot, reference = load_seed(str(SEED))
    assert reference == "eur"
    assert len(snapshot.transactions) == 28
    dates = [t.date for t in snapshot.transactions]
    assert dates == sorted(dates, reverse=True)
    assert snapshot.account_index["broker"].initial_balances == ()
    assert snapshot.account_index["checking"].initial_balances == (InitialBalance("eur", 250000),)


def test_seed_is_consistent():
    snapshot, reference = load_seed(str(SEED))
    assert unknown_references(snapshot) == []
    assert unpriced_holdings(snapshot, reference) == []

    balances = account_balances(snapshot)
    assert balances["broker"]["vwce"] == 33
    assert balances["usd-wallet"]["usd"] == 15000


@pytest.mark.parametrize("grouping", list(Grouping))
def test_seed_values_under_every_grouping(grouping):
    snapshot, reference = load_seed(str(SEED))
    engine = LedgerReplayEngine(
        Grouper(grouping, snapshot.account_index, snapshot.currency_index),
        snapshot.accounts,
        snapshot.rates,
        reference,
    )
    seg = segment(date(2024, 12, 1), date(2026, 9, 30), Density.DENSE)
    active = aggregate(seg, snapshot.transactions, engine, Side.ACTIVE)
    passive = aggregate(seg, snapshot.transactions, engine, Side.PASSIVE)

    assert len(active.buckets) == seg.bucket_count
    assert active.groups
    assert all(b.total >= 0 for b in active.buckets)
    assert all(b.total >= 0 for b in passive.buckets)
