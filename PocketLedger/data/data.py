"""Dashboard analytics over a sequence of transactions.

Every function here is pure: it takes the records and a caller-supplied ``now`` and never
reads the wall clock or the store, so results are reproducible. The records are loaded
into a :class:`pandas.DataFrame` and filtered, grouped and summed there.
"""
import dataclasses
import datetime
import enum
import logging
from typing import Dict, Iterable, List, Tuple, Union

import pandas as pd

from ..core.models import Category, Kind, Transaction
from ..settings import locale

FALLBACK_COLOR = '#cbd5e1'
WINDOW_DAYS = 7

COLUMNS = ['order', 'amount', 'kind', 'category', 'date']

DateLike = Union[datetime.datetime, datetime.date]


class Period(enum.StrEnum):
    Week = 'week'
    Month = 'month'


@dataclasses.dataclass(frozen=True)
class Summary:
    income: float
    expense: float
    net: float


@dataclasses.dataclass(frozen=True)
class DayBucket:
    """Expenses of one calendar day, per category name."""
    date: datetime.date
    label: str
    total: float
    amounts: Dict[str, float]


@dataclasses.dataclass(frozen=True)
class DailyBreakdown:
    days: Tuple[DayBucket, ...]
    keys: Tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class CategoryTotal:
    name: str
    amount: float


def _as_date(value: DateLike) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def _to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Load transactions into a DataFrame, keeping their list position in ``order``.

    Args:
        transactions (Iterable[Transaction]): Records in store order.

    Returns:
        pd.DataFrame: One row per transaction with a datetime64 ``date`` column.
    """
    records = [
        {
            'order': n,
            'amount': float(t.amount),
            'kind': t.kind.value,
            'category': t.category,
            'date': t.date,
        }
        for n, t in enumerate(transactions)
    ]
    df = pd.DataFrame.from_records(records, columns=COLUMNS)
    df['amount'] = pd.to_numeric(df['amount'], errors='coerce').fillna(0.0)
    df['date'] = pd.to_datetime(df['date'])
    return df


def _expenses(df: pd.DataFrame) -> pd.DataFrame:
    return df[df['kind'] == Kind.Expense.value]


def get_summary(transactions: Iterable[Transaction]) -> Summary:
    """Total income, total expense and their difference over all transactions.

    Returns:
        Summary: ``net`` is ``income - expense``.
    """
    df = _to_frame(transactions)
    income = float(df.loc[df['kind'] == Kind.Income.value, 'amount'].sum())
    expense = float(df.loc[df['kind'] == Kind.Expense.value, 'amount'].sum())
    return Summary(income=income, expense=expense, net=income - expense)


def get_daily_breakdown(transactions: Iterable[Transaction], now: DateLike,
                        locale_name: str = locale.DEFAULT_LOCALE) -> DailyBreakdown:
    """Per-day, per-category expenses for the seven days ending on ``now``.

    Days without expenses are still returned, with a zero total. ``keys`` holds exactly
    the categories that have at least one expense in the window, in the order they are
    first seen (oldest day first, then list order within a day). Categories without
    activity are omitted rather than zero-filled.

    Args:
        transactions (Iterable[Transaction]): Records in store order.
        now (datetime.date | datetime.datetime): Reference instant; its date is the last day.
        locale_name (str): Locale for the weekday labels.

    Returns:
        DailyBreakdown: Seven buckets, oldest to newest.
    """
    today = _as_date(now)
    days = [today - datetime.timedelta(days=n) for n in range(WINDOW_DAYS - 1, -1, -1)]

    df = _expenses(_to_frame(transactions))
    df = df[(df['date'] >= pd.Timestamp(days[0])) & (df['date'] <= pd.Timestamp(today))]
    df = df.sort_values(['date', 'order'], kind='stable')

    buckets = []
    for day in days:
        day_df = df[df['date'] == pd.Timestamp(day)]
        amounts = day_df.groupby('category', sort=False)['amount'].sum()
        buckets.append(DayBucket(
            date=day,
            label=locale.format_weekday(day, locale_name),
            total=float(day_df['amount'].sum()),
            amounts={str(k): float(v) for k, v in amounts.items()},
        ))

    keys = tuple(dict.fromkeys(df['category'].tolist()))
    return DailyBreakdown(days=tuple(buckets), keys=keys)


def _conform_period(df: pd.DataFrame, period: Period, today: datetime.date) -> pd.DataFrame:
    """Filter rows to the selected window.

    ``Period.Week`` spans the event dates from seven days before today through today,
    inclusive. ``Period.Month`` is the calendar month containing today.
    """
    if period == Period.Week:
        start = pd.Timestamp(today - datetime.timedelta(days=WINDOW_DAYS))
        return df[(df['date'] >= start) & (df['date'] <= pd.Timestamp(today))]
    if period == Period.Month:
        month = pd.Period(year=today.year, month=today.month, freq='M')
        return df[df['date'].dt.to_period('M') == month]
    raise ValueError(f'Unknown period: {period!r}')


def get_period_breakdown(transactions: Iterable[Transaction], period: Period,
                         now: DateLike) -> List[CategoryTotal]:
    """Expense totals per category within a week or month, largest first.

    Categories with equal totals keep the order in which they first appear in
    ``transactions``. The order is deterministic but is not a strict total order on
    the totals alone.

    Raises:
        ValueError: If ``period`` is not a :class:`Period`.
    """
    period = Period(period)
    df = _conform_period(_expenses(_to_frame(transactions)), period, _as_date(now))
    if df.empty:
        logging.debug(f'No expenses in the current {period}.')
        return []

    totals = df.groupby('category', sort=False)['amount'].sum()
    totals = totals.sort_values(ascending=False, kind='stable')
    return [CategoryTotal(name=str(name), amount=float(amount)) for name, amount in totals.items()]


def category_color(name: str, categories: Iterable[Category]) -> str:
    """Return the color of the first category with this name, or a neutral gray."""
    for c in categories:
        if c.name == name:
            return c.color
    return FALLBACK_COLOR
