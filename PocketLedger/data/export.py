"""Export of transactions and categories to files the user can keep or open elsewhere."""
import json
import logging
import pathlib
from typing import Iterable, Union

import pandas as pd

from ..core.models import DATE_FORMAT, Category, Transaction
from ..status import status

CSV_COLUMNS = ['Date', 'Type', 'Category', 'Description', 'Amount']

PathLike = Union[str, pathlib.Path]


def _with_suffix(path: PathLike, suffix: str) -> pathlib.Path:
    path = pathlib.Path(path)
    if path.suffix.lower() != suffix:
        path = path.with_name(path.name + suffix)
    return path


def export_csv(transactions: Iterable[Transaction], path: PathLike) -> pathlib.Path:
    """
    Write transactions as CSV, one row each, in the order given.

    Amounts are unsigned magnitudes with two decimals; the ``Type`` column carries the sign.

    Args:
        transactions: The records to export.
        path: Destination. ``.csv`` is appended if missing.

    Returns:
        pathlib.Path: The file written.

    Raises:
        status.PersistenceError: If the file cannot be written.
    """
    path = _with_suffix(path, '.csv')
    df = pd.DataFrame.from_records(
        [
            {
                'Date': t.date.strftime(DATE_FORMAT),
                'Type': t.kind.value,
                'Category': t.category,
                'Description': t.description,
                'Amount': t.amount,
            }
            for t in transactions
        ],
        columns=CSV_COLUMNS,
    )
    try:
        df.to_csv(path, index=False, float_format='%.2f', encoding='utf-8')
    except OSError as ex:
        raise status.PersistenceError(f'Could not write {path}: {ex}') from ex

    logging.info(f'Exported {len(df)} transaction(s) to {path}')
    return path


def export_categories(categories: Iterable[Category], path: PathLike) -> pathlib.Path:
    """
    Write categories as a pretty-printed JSON list.

    Raises:
        status.PersistenceError: If the file cannot be written.
    """
    path = _with_suffix(path, '.json')
    data = [c.to_dict() for c in categories]
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    except OSError as ex:
        raise status.PersistenceError(f'Could not write {path}: {ex}') from ex

    logging.info(f'Exported {len(data)} category(ies) to {path}')
    return path
