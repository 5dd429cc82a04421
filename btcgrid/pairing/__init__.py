"""Pairing and profit engine."""

from btcgrid.pairing.engine import (
    commission_in_quote,
    make_grid_pair,
    match_completed_pairs,
    match_open_pairs,
    summarize,
)
from btcgrid.pairing.types import CompletedPair, GridPair, ProfitSummary

__all__ = [
    "CompletedPair",
    "GridPair",
    "ProfitSummary",
    "commission_in_quote",
    "make_grid_pair",
    "match_completed_pairs",
    "match_open_pairs",
    "summarize",
]
