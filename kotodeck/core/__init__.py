"""Merge and ordering engine."""

from .merger import DeckScope, LevelIndex, Merger, MergeResult, merge_entries
from .ranker import bucket_key, rank_cards, verify_dense_ranks

__all__ = [
    'DeckScope',
    'LevelIndex',
    'Merger',
    'MergeResult',
    'merge_entries',
    'bucket_key',
    'rank_cards',
    'verify_dense_ranks',
]
