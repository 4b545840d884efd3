import unittest

import numpy as np

from matchup.candidates import CandidatePairs
from matchup.groups import cluster_groups, flatten_groups, group_pairs
from utilities.logconfig import configure_logging


def make_pairs(base_id, other_id) -> CandidatePairs:
    base_id = np.asarray(base_id, dtype='int64')
    return CandidatePairs(
        base_id=base_id,
        other_id=np.asarray(other_id, dtype='int64'),
        distance_km=np.arange(base_id.size, dtype='float64'),
        time_diff_s=np.arange(base_id.size, dtype='float64') * 10,
    )


class GroupPairsTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        configure_logging(False, 'INFO', True)
        cls.pairs = make_pairs([3, 1, 3, 1, 5], [7, 2, 4, 9, 4])
        cls.groups = group_pairs(cls.pairs)

    def test_one_group_per_base(self):
        self.assertEqual([1, 3, 5], [g.base_id for g in self.groups])
        self.assertEqual([0, 1, 2], [g.group_id for g in self.groups])

    def test_members_ordered(self):
        np.testing.assert_array_equal([2, 9], self.groups[0].other_ids)
        np.testing.assert_array_equal([4, 7], self.groups[1].other_ids)
        np.testing.assert_array_equal([4], self.groups[2].other_ids)

    def test_member_values_follow_pairs(self):
        # pair (3, 4) was the third input pair
        self.assertEqual(2.0, self.groups[1].members.distance_km[0])
        self.assertEqual(20.0, self.groups[1].members.time_diff_s[0])

    def test_pure(self):
        again = group_pairs(self.pairs)
        self.assertTrue(all(a.equals(b) for a, b in zip(self.groups, again)))
        np.testing.assert_array_equal([3, 1, 3, 1, 5], self.pairs.base_id)

    def test_flatten(self):
        flat = flatten_groups(self.groups)
        self.assertTrue(flat.equals(self.pairs.sort()))

    def test_empty(self):
        self.assertEqual([], group_pairs(CandidatePairs.create_empty()))
        self.assertEqual([], cluster_groups([]))


class ClusterGroupsTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls) -> None:
        configure_logging(False, 'INFO', True)

    def test_shared_comparison_soundings(self):
        clusters = cluster_groups(group_pairs(make_pairs([3, 1, 3, 1, 5], [7, 2, 4, 9, 4])))
        self.assertEqual(2, len(clusters))
        np.testing.assert_array_equal([1], clusters[0].base_ids)
        np.testing.assert_array_equal([2, 9], clusters[0].other_ids)
        np.testing.assert_array_equal([3, 5], clusters[1].base_ids)
        np.testing.assert_array_equal([4, 7], clusters[1].other_ids)
        self.assertEqual((3, 5), clusters[1].base_range)
        self.assertEqual((4, 7), clusters[1].other_range)

    def test_chained_groups(self):
        clusters = cluster_groups(group_pairs(make_pairs([0, 2, 4, 4], [1, 5, 1, 5])))
        self.assertEqual(1, len(clusters))
        np.testing.assert_array_equal([0, 2, 4], clusters[0].base_ids)
        np.testing.assert_array_equal([1, 5], clusters[0].other_ids)

    def test_cluster_ids_follow_base_order(self):
        clusters = cluster_groups(group_pairs(make_pairs([8, 0, 4], [30, 10, 20])))
        self.assertEqual([0, 1, 2], [c.cluster_id for c in clusters])
        self.assertEqual([0, 4, 8], [int(c.base_ids[0]) for c in clusters])
