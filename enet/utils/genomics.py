"""
Genomics utility functions.

Peaks are named by their coordinates (``chr1-1000-1500``). Interval overlap
queries are delegated to pyranges, which keeps one interval tree per
chromosome, so genome-wide peak sets can be matched against every gene
window in a single join.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set

import numpy as np
import pandas as pd
import pyranges as pr

from ..exceptions import InputContractViolation


PEAK_PATTERN = re.compile(r"^(?P<chrom>.+)[:\-_](?P<start>\d+)[\-_](?P<end>\d+)$")

INTERVAL_COLUMNS = ["Chromosome", "Start", "End"]


@dataclass(frozen=True)
class Peak:
    """
    A genomic interval of chromatin accessibility.

    Attributes
    ----------
    chrom : str
        Chromosome.
    start : int
        Start position.
    end : int
        End position.
    """

    chrom: str
    start: int
    end: int

    @classmethod
    def parse(cls, text: str) -> "Peak":
        """
        Parse a peak identifier.

        Accepts ``chr1-100-200``, ``chr1:100-200`` and ``chr1_100_200``.
        """
        match = PEAK_PATTERN.match(str(text).strip())
        if match is None:
            raise InputContractViolation(f"Cannot parse peak identifier: {text!r}")

        start = int(match.group("start"))
        end = int(match.group("end"))
        if end < start:
            raise InputContractViolation(f"Peak end precedes start: {text!r}")

        return cls(match.group("chrom"), start, end)

    @property
    def name(self) -> str:
        """Canonical identifier."""
        return f"{self.chrom}-{self.start}-{self.end}"

    @property
    def width(self) -> int:
        return self.end - self.start

    @property
    def summit(self) -> int:
        """Single-base midpoint."""
        return (self.start + self.end) // 2

    def pad(self, n: int) -> "Peak":
        """Extend ``n`` bases on either side."""
        return Peak(self.chrom, max(0, self.start - n), self.end + n)

    def distance_to(self, other: "Peak") -> Optional[int]:
        """Distance between midpoints, or None across chromosomes."""
        if self.chrom != other.chrom:
            return None
        return abs(self.summit - other.summit)

    def __str__(self) -> str:
        return self.name


def parse_peaks(names: Iterable[str]) -> pd.DataFrame:
    """
    Parse peak identifiers into an interval table.

    Parameters
    ----------
    names : iterable of str
        Peak identifiers.

    Returns
    -------
    pd.DataFrame
        Columns Chromosome, Start, End, Peak. ``Peak`` keeps the identifier
        as given so it can be joined back onto matrix row names.
    """
    names = list(names)
    peaks = [Peak.parse(name) for name in names]

    return pd.DataFrame({
        "Chromosome": [p.chrom for p in peaks],
        "Start": np.array([p.start for p in peaks], dtype=np.int64),
        "End": np.array([p.end for p in peaks], dtype=np.int64),
        "Peak": names,
    })


def summit_intervals(names: Iterable[str]) -> pd.DataFrame:
    """
    One-base summit intervals for a set of peaks.

    Returns
    -------
    pd.DataFrame
        Columns Chromosome, Start, End, Peak, Summit where Summit is the
        canonical ``chrom-pos-pos`` string of the summit.
    """
    df = parse_peaks(names)
    summit = (df["Start"] + df["End"]) // 2
    df["Start"] = summit
    df["End"] = summit + 1
    df["Summit"] = df["Chromosome"] + "-" + summit.astype(str) + "-" + summit.astype(str)
    return df


def pad_positions(
    chrom: pd.Series,
    position: pd.Series,
    pad: int,
) -> pd.DataFrame:
    """
    Intervals covering ``position`` ± ``pad`` (inclusive on both sides).

    Parameters
    ----------
    chrom : pd.Series
        Chromosome of each position.
    position : pd.Series
        Anchor positions, e.g. TSSs.
    pad : int
        Bases padded on either side.
    """
    position = position.astype(np.int64)
    return pd.DataFrame({
        "Chromosome": chrom.astype(str).values,
        "Start": (position - pad).clip(lower=0).values,
        "End": (position + pad + 1).values,
    })


def center_positions(
    chrom: pd.Series,
    position: pd.Series,
    width: int,
) -> pd.DataFrame:
    """
    Intervals of ``width`` bases centered on single-base ``position``s.

    For an even width the window is ``[position - width // 2, position + width // 2)``,
    so a 2 x pad promoter reaches ``pad`` bases upstream and ``pad - 1``
    bases downstream of the TSS.
    """
    if width < 1:
        raise ValueError(f"width must be positive, got {width}")
    position = position.astype(np.int64)
    start = position - width // 2
    return pd.DataFrame({
        "Chromosome": chrom.astype(str).values,
        "Start": start.clip(lower=0).values,
        "End": (start + width).values,
    })


class IntervalIndex:
    """
    Overlap index over a set of named intervals.

    Example
    -------
    >>> windows = IntervalIndex(gene_windows, id_column="Gene")
    >>> pairs = windows.overlaps(parse_peaks(peak_names), query_id="Peak")
    """

    def __init__(self, intervals: pd.DataFrame, id_column: str):
        """
        Parameters
        ----------
        intervals : pd.DataFrame
            Chromosome, Start, End and an identifier column.
        id_column : str
            Name of the identifier column.
        """
        missing = [c for c in INTERVAL_COLUMNS + [id_column] if c not in intervals.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        self.id_column = id_column
        self.intervals = intervals[INTERVAL_COLUMNS + [id_column]].reset_index(drop=True)
        self._ranges = _to_ranges(self.intervals) if len(self.intervals) else None

    def __len__(self) -> int:
        return len(self.intervals)

    def overlaps(self, query: pd.DataFrame, query_id: str) -> pd.DataFrame:
        """
        All (query, subject) pairs whose intervals overlap.

        Parameters
        ----------
        query : pd.DataFrame
            Chromosome, Start, End and ``query_id`` columns.
        query_id : str
            Identifier column of the query table.

        Returns
        -------
        pd.DataFrame
            Two columns, ``query_id`` and the index's id column, deduplicated.
        """
        columns = [query_id, self.id_column]
        if self._ranges is None or len(query) == 0:
            return pd.DataFrame(columns=columns)

        if query_id == self.id_column:
            raise ValueError("query and index identifier columns must differ")

        query_ranges = _to_ranges(query[INTERVAL_COLUMNS + [query_id]])
        joined = query_ranges.join(self._ranges, suffix="_b")
        if len(joined) == 0:
            return pd.DataFrame(columns=columns)

        pairs = joined.df[columns].drop_duplicates()
        for col in columns:
            pairs[col] = pairs[col].astype(str)
        return pairs.reset_index(drop=True)

    def overlapping_ids(self, query: pd.DataFrame, query_id: str) -> Set[str]:
        """Identifiers of query intervals overlapping any indexed interval."""
        return set(self.overlaps(query, query_id)[query_id])


def _to_ranges(df: pd.DataFrame) -> pr.PyRanges:
    df = df.copy()
    df["Chromosome"] = df["Chromosome"].astype(str)
    df["Start"] = df["Start"].astype(np.int64)
    df["End"] = df["End"].astype(np.int64)
    return pr.PyRanges(df)
