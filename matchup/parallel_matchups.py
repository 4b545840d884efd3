from dataclasses import dataclass
import logging
import multiprocessing as mp
from typing import List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from matchup.candidates import DEFAULT_MAX_BLOCK_PAIRS, CandidatePairs, iter_distance_filtered
from matchup.config import MatchupConfig
from matchup.errors import ConfigError
from matchup.groups import MatchGroup, group_pairs
from matchup.policy import apply_policy
from matchup.soundings import SoundingSequence

CHUNKS_PER_PROCESS: int = 4


@dataclass(eq=False)
class MatchResult:
    base: SoundingSequence
    other: SoundingSequence
    pairs: CandidatePairs
    groups: List[MatchGroup]
    self_cross: bool = False
    config: Optional[MatchupConfig] = None


def match_base_range(base: SoundingSequence, other: SoundingSequence, config: MatchupConfig,
                     base_start: int, base_stop: int,
                     max_block_pairs: int = DEFAULT_MAX_BLOCK_PAIRS) -> CandidatePairs:
    '''
    Finder -> distance filter -> policy for the base soundings in [base_start, base_stop).
    Only reads the two sequences, so ranges can run in separate workers.
    '''
    blocks = []
    for pairs in iter_distance_filtered(base, other, config.time_threshold_s, config.distance_threshold_km,
                                        base_start, base_stop, max_block_pairs):
        blocks.append(apply_policy(base, other, pairs, config.policy, config.flag0_only))
    return CandidatePairs.concatenate(blocks)


_worker_state: Optional[tuple] = None


def _init_worker(base: SoundingSequence, other: SoundingSequence, config: MatchupConfig, max_block_pairs: int):
    # sequences reach each worker once, tasks only carry a base range
    global _worker_state
    _worker_state = (base, other, config, max_block_pairs)


def _match_worker_range(base_range: Tuple[int, int]) -> CandidatePairs:
    base, other, config, max_block_pairs = _worker_state
    return match_base_range(base, other, config, base_range[0], base_range[1], max_block_pairs)


def split_base_ranges(n_base: int, n_chunks: int) -> List[Tuple[int, int]]:
    '''
    Contiguous, disjoint ranges covering [0, n_base)
    '''
    n_chunks = max(1, min(n_chunks, n_base))
    edges = np.linspace(0, n_base, n_chunks + 1).astype('int64')
    return [(int(start), int(stop)) for start, stop in zip(edges[:-1], edges[1:]) if stop > start]


def find_matches(base: SoundingSequence, other: Optional[SoundingSequence], config: MatchupConfig,
                 nprocs: int = 1, max_block_pairs: int = DEFAULT_MAX_BLOCK_PAIRS,
                 show_progress: bool = False) -> MatchResult:
    '''
    Finds every pair of soundings within the configured distance and time thresholds.

    In self-cross mode the base sequence is compared against itself (pass other=None or
    the base sequence). Base soundings are split into contiguous ranges that are matched
    independently, in a process pool when nprocs > 1, and joined back in range order, so
    the result does not depend on nprocs.
    '''
    if other is None:
        other = base
    if config.self_cross and other is not base:
        raise ConfigError('Self-cross matching compares one sounding sequence with itself')

    logging.info(f'Comparing {len(base)} base soundings to {len(other)} comparison soundings '
                 f'across {other.n_sources} file(s)')

    n_chunks = nprocs * CHUNKS_PER_PROCESS if (nprocs > 1 or show_progress) else 1
    ranges = split_base_ranges(len(base), n_chunks)

    if nprocs > 1 and len(ranges) > 1:
        with mp.Pool(processes=nprocs, initializer=_init_worker,
                     initargs=(base, other, config, max_block_pairs)) as pool:
            parts = list(tqdm(pool.imap(_match_worker_range, ranges), total=len(ranges),
                              unit='chunk', disable=not show_progress))
    else:
        parts = [match_base_range(base, other, config, start, stop, max_block_pairs)
                 for start, stop in tqdm(ranges, unit='chunk', disable=not show_progress)]

    pairs = CandidatePairs.concatenate(parts)
    logging.info(f'Number of matched pairs = {len(pairs)}')
    return MatchResult(base=base, other=other, pairs=pairs, groups=group_pairs(pairs), self_cross=config.self_cross,
                       config=config)
