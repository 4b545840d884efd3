from dataclasses import dataclass, fields
import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np

from matchup.distance import great_circle_distance, within_distance
from matchup.soundings import SoundingSequence

DEFAULT_MAX_BLOCK_PAIRS: int = 5_000_000


@dataclass
class CandidatePairs:
    '''
    Column-wise list of candidate pairs. Distances are NaN until the distance filter has run.
    '''
    base_id: np.ndarray
    other_id: np.ndarray
    distance_km: np.ndarray
    time_diff_s: np.ndarray

    @classmethod
    def create_empty(cls) -> 'CandidatePairs':
        return cls(
            base_id=np.empty(0, dtype='int64'),
            other_id=np.empty(0, dtype='int64'),
            distance_km=np.empty(0, dtype='float64'),
            time_diff_s=np.empty(0, dtype='float64'),
        )

    @classmethod
    def concatenate(cls, parts: List['CandidatePairs']) -> 'CandidatePairs':
        if len(parts) == 0:
            return cls.create_empty()
        return cls(**{
            field.name: np.concatenate([getattr(p, field.name) for p in parts])
            for field in fields(cls)
        })

    def __len__(self) -> int:
        return self.base_id.size

    def take(self, index: np.ndarray) -> 'CandidatePairs':
        '''
        Subset by boolean mask or integer index
        '''
        return CandidatePairs(**{
            field.name: getattr(self, field.name)[index] for field in fields(self)
        })

    def sort(self) -> 'CandidatePairs':
        '''
        Order by base_id, then other_id
        '''
        order = np.lexsort((self.other_id, self.base_id))
        return self.take(order)

    def equals(self, other: 'CandidatePairs') -> bool:
        return all(
            np.array_equal(getattr(self, f.name), getattr(other, f.name), equal_nan=True)
            for f in fields(self)
        )


def time_window_candidates(base: SoundingSequence, other: SoundingSequence, time_threshold_s: float,
                           base_start: int = 0, base_stop: Optional[int] = None) -> CandidatePairs:
    '''
    All pairs (b, o) with b in [base_start, base_stop) and |time_b - time_o| <= time_threshold_s.

    The comparison window for every base sounding is found by binary search on the
    time sorted comparison sequence, so the cost scales with the number of candidates
    rather than with len(base) * len(other). Pairs come out ordered by base_id then other_id.
    '''
    if base_stop is None:
        base_stop = len(base)

    base_ids = np.arange(base_start, base_stop, dtype='int64')
    base_time = base.time[base_start:base_stop]

    starts, stops = other.window_bounds(base_time - time_threshold_s, base_time + time_threshold_s)
    counts = np.where(np.isfinite(base_time), stops - starts, 0).astype('int64')
    total = int(counts.sum())
    if total == 0:
        return CandidatePairs.create_empty()

    pair_base = np.repeat(base_ids, counts)
    # position of each pair within its base sounding's window
    offsets = np.arange(total, dtype='int64') - np.repeat(np.cumsum(counts) - counts, counts)
    pair_other = np.repeat(starts.astype('int64'), counts) + offsets

    time_diff = np.abs(base.time[pair_base] - other.time[pair_other])
    candidates = CandidatePairs(
        base_id=pair_base,
        other_id=pair_other,
        distance_km=np.full(total, np.nan),
        time_diff_s=time_diff,
    )
    # window edges are computed as t +/- T, which can round past the threshold
    return candidates.take(time_diff <= time_threshold_s)


def plan_base_blocks(base: SoundingSequence, other: SoundingSequence, time_threshold_s: float,
                     base_start: int = 0, base_stop: Optional[int] = None,
                     max_block_pairs: int = DEFAULT_MAX_BLOCK_PAIRS) -> List[Tuple[int, int]]:
    '''
    Split [base_start, base_stop) into contiguous ranges that each produce at most
    max_block_pairs time-window candidates (a single base sounding is never split).
    '''
    if base_stop is None:
        base_stop = len(base)
    if base_stop <= base_start:
        return []

    base_time = base.time[base_start:base_stop]
    starts, stops = other.window_bounds(base_time - time_threshold_s, base_time + time_threshold_s)
    counts = np.where(np.isfinite(base_time), stops - starts, 0).astype('int64')
    cumulative = np.cumsum(counts)

    blocks = []
    i = 0
    n = counts.size
    consumed = 0
    while i < n:
        # last index whose cumulative count stays within max_block_pairs
        j = int(np.searchsorted(cumulative, consumed + max_block_pairs, side='right'))
        j = max(j, i + 1)
        blocks.append((base_start + i, base_start + j))
        consumed = int(cumulative[j - 1])
        i = j
    return blocks


def iter_distance_filtered(base: SoundingSequence, other: SoundingSequence, time_threshold_s: float,
                           distance_threshold_km: float, base_start: int = 0, base_stop: Optional[int] = None,
                           max_block_pairs: int = DEFAULT_MAX_BLOCK_PAIRS) -> Iterator[CandidatePairs]:
    '''
    Yields, block by block, the time-window candidates that also pass the distance filter
    '''
    for block_start, block_stop in plan_base_blocks(base, other, time_threshold_s, base_start, base_stop,
                                                    max_block_pairs):
        candidates = time_window_candidates(base, other, time_threshold_s, block_start, block_stop)
        if len(candidates) == 0:
            continue
        yield distance_filter(base, other, candidates, distance_threshold_km)


def distance_filter(base: SoundingSequence, other: SoundingSequence, candidates: CandidatePairs,
                    distance_threshold_km: float) -> CandidatePairs:
    distance = great_circle_distance(
        base.lat[candidates.base_id], base.lon[candidates.base_id],
        other.lat[candidates.other_id], other.lon[candidates.other_id],
    )
    keep = within_distance(distance, distance_threshold_km)
    logging.debug(f'{int(keep.sum())} of {len(candidates)} time-window candidates within {distance_threshold_km} km')
    filtered = candidates.take(keep)
    filtered.distance_km = distance[keep]
    return filtered
