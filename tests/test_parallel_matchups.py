import unittest

import numpy as np

from lite_fixtures import brute_force_pairs, make_arrays, make_sequence, pair_set, random_sequence
from matchup.config import MatchupConfig
from matchup.errors import ConfigError
from matchup.parallel_matchups import (_init_worker, _match_worker_range, find_matches, match_base_range,
                                       split_base_ranges)
from matchup.policy import CrossInstrument, SelfCross
from utilities.logconfig import configure_logging


class MatchScenarioTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        configure_logging(False, 'INFO', True)
        cls.base = make_sequence(make_arrays([0], lat=[0], lon=[0]))

    def test_close_pair_matches(self):
        other = make_sequence(make_arrays([1000], lat=[0], lon=[0.5]))
        result = find_matches(self.base, other, MatchupConfig())
        self.assertEqual(1, len(result.pairs))
        self.assertEqual(1, len(result.groups))
        self.assertAlmostEqual(55.5975, float(result.pairs.distance_km[0]), places=3)
        self.assertEqual(1000.0, float(result.pairs.time_diff_s[0]))
        self.assertFalse(result.self_cross)

    def test_far_pair_does_not_match(self):
        other = make_sequence(make_arrays([0], lat=[0], lon=[2.0]))
        result = find_matches(self.base, other, MatchupConfig())
        self.assertEqual(0, len(result.pairs))
        self.assertEqual([], result.groups)

    def test_late_pair_does_not_match(self):
        other = make_sequence(make_arrays([43200.5], lat=[0], lon=[0]))
        self.assertEqual(0, len(find_matches(self.base, other, MatchupConfig()).pairs))

    def test_thresholds_inclusive(self):
        other = make_sequence(make_arrays([43200], lat=[0], lon=[0]))
        self.assertEqual(1, len(find_matches(self.base, other, MatchupConfig()).pairs))


class CrossInstrumentTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        configure_logging(False, 'INFO', True)
        rng = np.random.default_rng(2024)
        cls.base = random_sequence(rng, 2, 250)
        cls.other = random_sequence(rng, 3, 200)
        cls.config = MatchupConfig(distance_threshold_km=100, time_threshold_s=3 * 3600)
        cls.result = find_matches(cls.base, cls.other, cls.config)

    def test_finds_every_match(self):
        self.assertGreater(len(self.result.pairs), 0)
        self.assertEqual(brute_force_pairs(self.base, self.other, 100, 3 * 3600), pair_set(self.result.pairs))

    def test_thresholds_hold(self):
        self.assertTrue(np.all(self.result.pairs.distance_km <= 100))
        self.assertTrue(np.all(self.result.pairs.time_diff_s <= 3 * 3600))

    def test_groups_cover_pairs(self):
        self.assertEqual(len(self.result.pairs), sum(len(g.members) for g in self.result.groups))
        base_ids = [g.base_id for g in self.result.groups]
        self.assertEqual(sorted(set(base_ids)), base_ids)

    def test_parallel_matches_serial(self):
        parallel = find_matches(self.base, self.other, self.config, nprocs=2)
        self.assertTrue(parallel.pairs.equals(self.result.pairs))
        self.assertEqual(len(self.result.groups), len(parallel.groups))
        self.assertTrue(all(a.equals(b) for a, b in zip(self.result.groups, parallel.groups)))

    def test_worker_matches_range_from_shared_sequences(self):
        _init_worker(self.base, self.other, self.config, 200)
        part = _match_worker_range((100, 300))
        self.assertTrue(part.equals(match_base_range(self.base, self.other, self.config, 100, 300)))
        self.assertTrue(np.all((part.base_id >= 100) & (part.base_id < 300)))

    def test_block_size_does_not_change_result(self):
        blocked = find_matches(self.base, self.other, self.config, max_block_pairs=50)
        self.assertTrue(blocked.pairs.equals(self.result.pairs))

    def test_swapping_base_and_other(self):
        swapped = find_matches(self.other, self.base, self.config)
        self.assertEqual({(o, b) for b, o in pair_set(self.result.pairs)}, pair_set(swapped.pairs))
        order = np.lexsort((swapped.pairs.base_id, swapped.pairs.other_id))
        np.testing.assert_allclose(self.result.pairs.distance_km, swapped.pairs.distance_km[order], rtol=1e-12)

    def test_flag0_only(self):
        config = MatchupConfig(distance_threshold_km=100, time_threshold_s=3 * 3600, flag0_only=True)
        result = find_matches(self.base, self.other, config)
        self.assertTrue(np.all(self.base.quality_flag[result.pairs.base_id] == 0))
        self.assertTrue(np.all(self.other.quality_flag[result.pairs.other_id] == 0))
        good = (self.base.quality_flag[self.result.pairs.base_id] == 0) & \
            (self.other.quality_flag[self.result.pairs.other_id] == 0)
        self.assertTrue(result.pairs.equals(self.result.pairs.take(good)))


class SelfCrossTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        configure_logging(False, 'INFO', True)
        # soundings 5 and 6 are one second and ~100 m apart, everything else is far away
        lat = np.array([-60, -45, -30, -15, 0, 10, 10, 30, 45, 60], dtype='float64')
        lon = np.array([0, 40, 80, 120, 160, 10, 10.001, -160, -120, -80], dtype='float64')
        time = np.array([0, 100, 200, 300, 400, 500, 501, 600, 700, 800], dtype='float64')
        cls.track = make_sequence(make_arrays(time, lat=lat, lon=lon))

        rng = np.random.default_rng(11)
        cls.random_track = random_sequence(rng, 3, 150)

    def test_neighbours_along_track_dropped(self):
        result = find_matches(self.track, None, MatchupConfig(policy=SelfCross(60)))
        self.assertEqual(0, len(result.pairs))
        self.assertTrue(result.self_cross)
        self.assertIs(result.base, result.other)

    def test_reported_once_without_gap(self):
        result = find_matches(self.track, None, MatchupConfig(policy=SelfCross(0)))
        self.assertEqual({(5, 6)}, pair_set(result.pairs))

    def test_cross_instrument_against_itself(self):
        result = find_matches(self.track, self.track, MatchupConfig(policy=CrossInstrument()))
        expected = {(i, i) for i in range(10)} | {(5, 6), (6, 5)}
        self.assertEqual(expected, pair_set(result.pairs))

    def test_canonical_pairs(self):
        result = find_matches(self.random_track, None, MatchupConfig(policy=SelfCross(600)))
        pairs = result.pairs
        self.assertGreater(len(pairs), 0)
        self.assertTrue(np.all(pairs.base_id < pairs.other_id))
        self.assertTrue(np.all(pairs.time_diff_s >= 600))

    def test_day_boundary_neighbours_dropped(self):
        track = make_sequence(make_arrays([86399], lat=[10.0], lon=[10.0], source_index=0),
                              make_arrays([86400], lat=[10.003], lon=[10.0], source_index=1))
        self.assertEqual(0, len(find_matches(track, None, MatchupConfig(policy=SelfCross(60))).pairs))
        self.assertEqual({(0, 1)}, pair_set(find_matches(track, None, MatchupConfig(policy=SelfCross(0))).pairs))

    def test_parallel_matches_serial(self):
        config = MatchupConfig(policy=SelfCross(600))
        serial = find_matches(self.random_track, None, config)
        parallel = find_matches(self.random_track, self.random_track, config, nprocs=3)
        self.assertTrue(serial.pairs.equals(parallel.pairs))

    def test_requires_one_sequence(self):
        with self.assertRaises(ConfigError):
            find_matches(self.track, self.random_track, MatchupConfig(policy=SelfCross()))


class SplitBaseRangesTestCase(unittest.TestCase):

    def test_even_split(self):
        self.assertEqual([(0, 3), (3, 6), (6, 10)], split_base_ranges(10, 3))

    def test_more_chunks_than_soundings(self):
        self.assertEqual([(0, 1), (1, 2)], split_base_ranges(2, 8))

    def test_empty(self):
        self.assertEqual([], split_base_ranges(0, 4))
