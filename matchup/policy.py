'''
Pair filters applied after the distance filter: the flag0 quality filter and the
comparison policy, either CrossInstrument or SelfCross.
'''

from dataclasses import dataclass
from typing import Union

import numpy as np

from matchup.candidates import CandidatePairs
from matchup.soundings import SoundingSequence

DEFAULT_MIN_SELF_CROSS_GAP_S: float = 1800.0


@dataclass(frozen=True)
class CrossInstrument:
    '''
    Two distinct tracks: every pair that passed the thresholds is kept
    '''

    def keep(self, base: SoundingSequence, other: SoundingSequence, pairs: CandidatePairs) -> np.ndarray:
        return np.ones(len(pairs), dtype=bool)


@dataclass(frozen=True)
class SelfCross:
    '''
    One track compared against itself. Drops the trivial (i, i) pair, keeps only the
    canonical (i, j) with i < j, and drops pairs closer in time than min_gap_s
    whichever source file each sounding came from (one orbit leg can span two daily files).
    '''
    min_gap_s: float = DEFAULT_MIN_SELF_CROSS_GAP_S

    def keep(self, base: SoundingSequence, other: SoundingSequence, pairs: CandidatePairs) -> np.ndarray:
        canonical = pairs.base_id < pairs.other_id
        too_close = pairs.time_diff_s < self.min_gap_s
        return canonical & ~too_close


MatchPolicy = Union[CrossInstrument, SelfCross]


def quality_mask(base: SoundingSequence, other: SoundingSequence, pairs: CandidatePairs) -> np.ndarray:
    return (base.quality_flag[pairs.base_id] == 0) & (other.quality_flag[pairs.other_id] == 0)


def apply_policy(base: SoundingSequence, other: SoundingSequence, pairs: CandidatePairs,
                 policy: MatchPolicy, flag0_only: bool = False) -> CandidatePairs:
    keep = policy.keep(base, other, pairs)
    if flag0_only:
        keep &= quality_mask(base, other, pairs)
    return pairs.take(keep)
