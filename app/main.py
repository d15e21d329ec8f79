import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date, timedelta
from functools import partial

import pandas as pd
import streamlit as st

from networth.charts import line_figure, series_lines_figure, spending_figure, stacked_area_figure, trend_figure
from networth.config import get_settings
from networth.errors import UnpricedCurrencyError
from networth.events import LedgerStore
from networth.flows import Period
from networth.grouping import Grouping
from networth.logging_config import configure_logging
from networth.memo import ChartRequest
from networth.rates import whole_unit_rate
from networth.services import ValuationService, unpriced_holdings
from networth.transforms import load_seed, remove_transaction
from networth.valuation import BaselineMode, Scale, Side

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)

st.set_page_config(page_title="Net Worth", layout="wide")

if "service" not in st.session_state:
    snapshot, seed_currency = load_seed(str(settings.seed_path))
    store = LedgerStore(snapshot)
    st.session_state.service = ValuationService(store)
    st.session_state.reference_currency = settings.reference_currency or seed_currency

service: ValuationService = st.session_state.service
snapshot = service.snapshot
currencies = snapshot.currency_index
accounts = snapshot.account_index
ref = st.session_state.reference_currency

st.sidebar.markdown("### ⚙️ View")
ref = st.sidebar.selectbox(
    "Reference currency",
    options=list(currencies),
    index=list(currencies).index(ref),
    format_func=lambda cid: currencies[cid].name,
)
st.session_state.reference_currency = ref
ref_currency = currencies[ref]

today = snapshot.last_date or date.today()
default_range = (today - timedelta(days=settings.history_days), today)
picked = st.sidebar.date_input("Range", value=default_range)
start, end = picked if len(picked) == 2 else default_range
density = st.sidebar.radio("Density", ["light", "dense"], index=0 if settings.density.value == "light" else 1)


def fmt(value: float) -> str:
    return f"{value / 10 ** ref_currency.decimal_points:,.2f} {ref_currency.symbol}"


def major(points):
    return [(d, v / 10 ** ref_currency.decimal_points) for d, v in points]


def request_for(grouping: Grouping, side: Side = Side.ACTIVE) -> ChartRequest:
    return ChartRequest(start, end, ref, grouping=grouping, density=density, side=side)


def draw_stacked(grouping: Grouping, title: str, scale: Scale, baseline_mode: BaselineMode, side: Side):
    try:
        result = service.chart_layout(
            request_for(grouping, side),
            scale=scale,
            baseline_mode=baseline_mode,
            width=settings.chart_width,
            height=settings.chart_height,
        )
    except UnpricedCurrencyError as e:
        st.warning(f"Rate unavailable: {e}")
        return
    chart, series = result.value
    if not series.groups:
        st.info("Nothing to show for this range.")
        return
    value_format = (lambda v: f"{v:.0%}") if scale is Scale.RELATIVE else fmt
    st.plotly_chart(stacked_area_figure(chart, series, value_format, title), use_container_width=True)


menu = st.sidebar.radio(
    "Menu",
    [
        "🏠 Net worth",
        "💳 By account",
        "💱 By currency",
        "📊 Investments",
        "📈 Cash flow",
        "📅 Trends",
        "🧾 Spending",
        "🔁 Exchange rates",
        "✅ Validation",
    ],
)

if menu == "🏠 Net worth":
    total = service.net_worth_total(ref, end).value
    k1, k2, k3 = st.columns(3)
    with k1:
        st.metric("Net worth", total.map(fmt).get_or_else("rate unavailable"))
    with k2:
        st.metric("Accounts", sum(1 for a in snapshot.accounts if a.is_mine))
    with k3:
        st.metric("Transactions", len(snapshot.transactions))
    if total.is_left():
        error = total.get_error()
        held_in = ", ".join(accounts[a].name for a in error["account_ids"])
        st.warning(f"Rate unavailable for {', '.join(error['currency_ids'])} (held in {held_in}).")

    mode = st.radio("Baseline", ["Global baseline", "None"], horizontal=True)
    draw_stacked(
        Grouping.ACCOUNT_TOTAL,
        "Net worth",
        Scale.CROPPED,
        BaselineMode.GLOBAL if mode == "Global baseline" else BaselineMode.NONE,
        Side.ACTIVE,
    )

elif menu in ("💳 By account", "💱 By currency"):
    by_currency = menu == "💱 By currency"
    options = [g for g in Grouping if g.by_currency == by_currency]
    grouping = st.selectbox("Group by", options, format_func=lambda g: g.value)
    c1, c2, c3 = st.columns(3)
    with c1:
        scale = st.selectbox("Scale", list(Scale), format_func=lambda s: s.value)
    with c2:
        baseline_mode = st.selectbox("Baselines", list(BaselineMode), format_func=lambda b: b.value)
    with c3:
        side = st.selectbox("Side", list(Side), format_func=lambda s: s.value)
    draw_stacked(grouping, menu[2:], scale, baseline_mode, side)

    if not by_currency:
        st.subheader("Balances")
        rows = []
        for account_id, b in service.balances(ref, end).value.items():
            account = accounts[account_id]
            if not account.is_mine:
                continue
            rows.append({
                "Account": account.name,
                "Holdings": ", ".join(f"{currencies[c].name}: {q}" for c, q in b["holdings"].items() if q),
                "Value": b["value"].map(fmt).get_or_else("rate unavailable"),
            })
        st.table(pd.DataFrame(rows))

elif menu == "📊 Investments":
    try:
        gain = service.investment_gain(request_for(Grouping.ACCOUNT_TOTAL)).value
        st.plotly_chart(line_figure(major(gain), "Gain", "Gain over book value"), use_container_width=True)
    except UnpricedCurrencyError as e:
        st.warning(f"Rate unavailable: {e}")

    st.subheader("Currency performance")
    chosen = st.multiselect(
        "Currencies (empty: the ones you hold)",
        [c for c in currencies if c != ref],
        format_func=lambda cid: currencies[cid].name,
    )
    try:
        performance = service.currency_performance(request_for(Grouping.CURRENCY), chosen or None).value
        if performance.groups:
            st.plotly_chart(series_lines_figure(performance, percent=True), use_container_width=True)
        else:
            st.info("No foreign currency held.")
    except UnpricedCurrencyError as e:
        st.warning(f"Rate unavailable: {e}")

elif menu == "📅 Trends":
    names = {c.id: c.name for c in snapshot.categories}
    category = st.selectbox(
        "Category",
        [None] + list(names),
        format_func=lambda cid: "All categories" if cid is None else names[cid],
    )
    c1, c2 = st.columns(2)
    with c1:
        period = st.radio("Group by", list(Period), format_func=lambda p: p.value, horizontal=True)
    with c2:
        years = st.number_input("Years", min_value=1, max_value=10, value=1)
    try:
        points = service.trends(ref, end, category, period, int(years)).value
        title = "All categories" if category is None else names[category]
        st.plotly_chart(trend_figure(major(points), title), use_container_width=True)
    except UnpricedCurrencyError as e:
        st.warning(f"Rate unavailable: {e}")

elif menu == "📈 Cash flow":
    hide = st.checkbox("Hide financial income")
    try:
        points = service.cash_flow(request_for(Grouping.ACCOUNT_TOTAL), hide).value
        st.plotly_chart(
            line_figure(major(points), "Net flow", "Cumulative cash flow"),
            use_container_width=True,
        )
    except UnpricedCurrencyError as e:
        st.warning(f"Rate unavailable: {e}")

elif menu == "🧾 Spending":
    try:
        totals = service.spending(request_for(Grouping.ACCOUNT_TOTAL)).value
    except UnpricedCurrencyError as e:
        st.warning(f"Rate unavailable: {e}")
        totals = {}
    if totals:
        scaled = {k: v / 10 ** ref_currency.decimal_points for k, v in totals.items()}
        st.plotly_chart(spending_figure(scaled), use_container_width=True)
    else:
        st.info("No spending in this range.")

    st.subheader("Transactions")
    shown = [t for t in snapshot.transactions if start <= t.date <= end]
    st.dataframe(pd.DataFrame([
        {
            "id": t.id,
            "date": t.date,
            "kind": t.kind.value,
            "amount": t.amount,
            "currency": t.currency_id,
            "note": t.note,
        }
        for t in shown
    ]))
    drop = st.selectbox("Exclude a transaction", [""] + [t.id for t in shown])
    if drop and st.button("Exclude"):
        service.store.replace(snapshot.with_transactions(remove_transaction(snapshot.transactions, drop)))
        st.rerun()

elif menu == "🔁 Exchange rates":
    pairs = [p for p in snapshot.rates.pairs() if p[1] == ref]
    if not pairs:
        st.info("No exchange rates observed against the reference currency.")
    for from_id, to_id in pairs:
        whole = partial(whole_unit_rate, from_currency=currencies[from_id], to_currency=currencies[to_id])
        rate = service.try_rate_at(from_id, to_id, end)
        st.metric(
            f"{currencies[from_id].name} → {currencies[to_id].name}",
            rate.map(lambda r: f"{whole(r):,.4f}").get_or_else("rate unavailable"),
        )
        history = service.rate_history(from_id, to_id, end)
        if history:
            st.plotly_chart(line_figure([(d, whole(r)) for d, r in history], from_id), use_container_width=True)

elif menu == "✅ Validation":
    report = service.data_quality_report(extra=[partial(unpriced_holdings, reference_currency_id=ref)])
    if report["ok"]:
        st.success("Ledger looks consistent.")
    for entry in report["validation"]:
        with st.expander(f"{entry['validator']} ({len(entry['messages'])})"):
            for msg in entry["messages"]:
                st.markdown(f"- {msg}")
