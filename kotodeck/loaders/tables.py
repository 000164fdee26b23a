"""Tabular source reading shared by the JLPT list and example corpus loaders."""

from pathlib import Path
from typing import Iterable

import pandas as pd

from ..errors import MalformedSourceError


def read_table(path: Path, required: Iterable[str], sep: str = ",") -> pd.DataFrame:
    """
    Read a CSV/TSV file as strings with empty cells as "".

    Raises:
        MalformedSourceError: unparseable file or missing required columns
    """
    try:
        df = pd.read_csv(
            path,
            sep=sep,
            dtype=str,
            encoding='utf-8-sig',
            quoting=3 if sep == "\t" else 0,  # csv.QUOTE_NONE for TSV
            keep_default_na=False,
        ).fillna('')
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise MalformedSourceError(str(path), f"unreadable table: {e}") from e

    df.columns = df.columns.str.strip()
    missing = [column for column in required if column not in df.columns]
    if missing:
        raise MalformedSourceError(str(path), f"missing required columns: {', '.join(missing)}")
    return df
