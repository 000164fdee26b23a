"""
Stage 3 ("order"): assign every card a dense study rank 0..N-1.

Composite key, in order:

1. JLPT level, N5 first; cards without a level come last.
2. Frequency rank, most common first; cards without one come last.
3. Within a (level, frequency) bucket, a greedy forward pass over the
   kanji seen so far: the next card is the one introducing the fewest
   kanji not present in any earlier card.
4. Headword, then reading.

Step 3 is a heuristic. A card that introduces many kanji is not moved
behind later buckets, and the choice inside a bucket is only locally best.
"""

import heapq
import logging
from typing import Dict, Iterable, List, Set, Tuple

from ..models import Card

logger = logging.getLogger(__name__)

# sorts after every JlptLevel / frequency rank
_UNSET = float("inf")


def bucket_key(card: Card) -> Tuple[float, float]:
    level = int(card.level) if card.level is not None else _UNSET
    frequency = card.frequency_rank if card.frequency_rank is not None else _UNSET
    return level, frequency


def _greedy_order(members: List[Card], seen: Set[str]) -> List[Card]:
    """Order one bucket by fewest new kanji, updating ``seen`` as cards are placed."""
    new_counts: Dict[int, int] = {}
    by_kanji: Dict[str, List[int]] = {}
    heap = []

    for index, card in enumerate(members):
        unseen = card.kanji_characters - seen
        new_counts[index] = len(unseen)
        for char in unseen:
            by_kanji.setdefault(char, []).append(index)
        heap.append((len(unseen), card.headword, card.reading, index))
    heapq.heapify(heap)

    placed: Set[int] = set()
    out: List[Card] = []
    while heap:
        count, _, _, index = heapq.heappop(heap)
        if index in placed or count != new_counts[index]:
            continue  # stale entry
        placed.add(index)
        card = members[index]
        out.append(card)

        for char in card.kanji_characters - seen:
            seen.add(char)
            for other in by_kanji.pop(char, ()):
                if other in placed:
                    continue
                new_counts[other] -= 1
                peer = members[other]
                heapq.heappush(heap, (new_counts[other], peer.headword, peer.reading, other))

    return out


def rank_cards(cards: Iterable[Card]) -> List[Card]:
    """
    Set ``rank`` on every card and return them in rank order.

    Only the ``rank`` field is touched. Zero cards give an empty order.
    """
    buckets: Dict[Tuple[float, float], List[Card]] = {}
    for card in cards:
        buckets.setdefault(bucket_key(card), []).append(card)

    seen: Set[str] = set()
    ordered: List[Card] = []
    for key in sorted(buckets):
        ordered.extend(_greedy_order(buckets[key], seen))

    for rank, card in enumerate(ordered):
        card.rank = rank

    logger.info("Ranked %d cards in %d buckets (%d distinct kanji)", len(ordered), len(buckets), len(seen))
    return ordered


def verify_dense_ranks(cards: Iterable[Card]) -> bool:
    """True when the ranks are exactly {0, ..., N-1}."""
    cards = list(cards)
    ranks = [card.rank for card in cards]
    if any(rank is None for rank in ranks):
        return False
    return sorted(ranks) == list(range(len(cards)))
