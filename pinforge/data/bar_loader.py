"""Historical bar loading from tab-delimited OHLCV exports.

Expected layout (one header row, tab separated)::

    <DATE>      <TIME>    <OPEN>   <HIGH>   <LOW>    <CLOSE>  <TICKVOL> <VOL> <SPREAD>
    2024.01.02  01:00:00  2062.55  2064.10  2061.20  2063.80  1532      0     12

Prices are kept as text until they become ``Decimal`` so no binary
floating-point rounding leaks into the simulation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import pandas as pd

from pinforge.config import ConfigurationError
from pinforge.strategy.models import Bar

logger = logging.getLogger("pinforge.data")

COLUMNS = ["date", "time", "open", "high", "low", "close", "tick_volume", "volume", "spread"]


def find_bar_file(data_dir: str | Path, symbol: str, csv_filter: str = "") -> Path:
    """Return the first ``<symbol>*.csv`` file whose name contains *csv_filter*.

    Raises ``ConfigurationError`` if nothing matches.
    """
    data_dir = Path(data_dir)
    candidates = sorted(data_dir.glob(f"{symbol}*.csv"))
    for path in candidates:
        if not csv_filter or csv_filter.lower() in path.name.lower():
            return path
    raise ConfigurationError(
        f"No bar file for {symbol} in {data_dir}"
        + (f" matching '{csv_filter}'" if csv_filter else "")
    )


def read_bar_frame(path: str | Path) -> pd.DataFrame:
    """Read a bar export into a DataFrame with a UTC ``timestamp`` column.

    Price columns stay as strings; volumes become integers.
    """
    path = Path(path)
    try:
        df = pd.read_csv(
            path,
            sep="\t",
            header=0,
            names=COLUMNS,
            usecols=range(len(COLUMNS)),
            dtype=str,
            skip_blank_lines=True,
        )
    except FileNotFoundError:
        raise ConfigurationError(f"Bar file not found: {path}") from None
    except (ValueError, pd.errors.ParserError) as exc:
        raise ConfigurationError(f"Malformed bar file {path}: {exc}") from None

    if df.empty:
        return df.assign(timestamp=pd.Series(dtype="datetime64[ns, UTC]"))

    if df[COLUMNS].isna().any().any():
        bad = df[df[COLUMNS].isna().any(axis=1)].index[0]
        raise ConfigurationError(f"Malformed bar file {path}: missing fields on data row {bad + 1}")

    dates = df["date"].str.strip().str.replace(".", "-", regex=False)
    times = df["time"].str.strip()
    # HH:MM exports carry no seconds
    times = times.where(times.str.count(":") == 2, times + ":00")
    try:
        df["timestamp"] = pd.to_datetime(
            dates + " " + times,
            format="%Y-%m-%d %H:%M:%S",
            utc=True,
        )
        for col in ("tick_volume", "volume", "spread"):
            df[col] = df[col].str.strip().astype("int64")
    except ValueError as exc:
        raise ConfigurationError(f"Malformed bar file {path}: {exc}") from None

    return df


def frame_to_bars(df: pd.DataFrame) -> list[Bar]:
    """Convert a bar frame to ``Bar`` objects, oldest first."""
    bars: list[Bar] = []
    for row in df.itertuples(index=False):
        try:
            bars.append(
                Bar(
                    time=row.timestamp.to_pydatetime().astimezone(timezone.utc),
                    open=Decimal(row.open.strip()),
                    high=Decimal(row.high.strip()),
                    low=Decimal(row.low.strip()),
                    close=Decimal(row.close.strip()),
                    tick_volume=int(row.tick_volume),
                    volume=int(row.volume),
                    spread=int(row.spread),
                )
            )
        except InvalidOperation:
            raise ConfigurationError(f"Invalid price on bar {row.date} {row.time}") from None
    return bars


def load_bars(
    path: str | Path,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[Bar]:
    """Load bars from *path*, optionally keeping only ``start <= time <= end``.

    Naive *start* / *end* values are taken as UTC.  The result is sorted by
    time with duplicate timestamps dropped (first occurrence kept).
    """
    df = read_bar_frame(path)
    if df.empty:
        logger.warning("Bar file %s contains no rows", path)
        return []

    if start is not None:
        df = df[df["timestamp"] >= _as_utc(start)]
    if end is not None:
        df = df[df["timestamp"] <= _as_utc(end)]

    before = len(df)
    df = df.drop_duplicates(subset=["timestamp"]).sort_values("timestamp").reset_index(drop=True)
    if len(df) != before:
        logger.warning("Dropped %d duplicate bar(s) from %s", before - len(df), path)

    bars = frame_to_bars(df)
    if bars:
        logger.info(
            "Loaded %d bars from %s (%s → %s)",
            len(bars), path, bars[0].time.isoformat(), bars[-1].time.isoformat(),
        )
    return bars


def _as_utc(value: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")
