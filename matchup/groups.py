'''
Assembles filtered pairs into output groups.

group_pairs only looks at the pair list it is given, so it produces the same groups
whether the pairs come straight from the matcher or from a reloaded full match file.
'''

from dataclasses import dataclass
import logging
from typing import List

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from matchup.candidates import CandidatePairs


@dataclass(eq=False)
class MatchGroup:
    group_id: int
    base_id: int
    members: CandidatePairs

    @property
    def other_ids(self) -> np.ndarray:
        return self.members.other_id

    def equals(self, other: 'MatchGroup') -> bool:
        return (self.group_id == other.group_id
                and self.base_id == other.base_id
                and self.members.equals(other.members))


@dataclass(eq=False)
class CrossingCluster:
    '''
    Groups that share at least one comparison sounding, i.e. one overpass of the base
    track over the comparison track.
    '''
    cluster_id: int
    base_ids: np.ndarray
    other_ids: np.ndarray

    @property
    def base_range(self):
        return int(self.base_ids[0]), int(self.base_ids[-1])

    @property
    def other_range(self):
        return int(self.other_ids[0]), int(self.other_ids[-1])


def group_pairs(pairs: CandidatePairs) -> List[MatchGroup]:
    '''
    One group per base sounding with at least one match, in base_id order. Members are
    ordered by other_id.
    '''
    if len(pairs) == 0:
        return []

    pairs = pairs.sort()
    boundaries = np.flatnonzero(np.diff(pairs.base_id)) + 1
    starts = np.concatenate([[0], boundaries])
    stops = np.concatenate([boundaries, [len(pairs)]])

    groups = [
        MatchGroup(group_id=i, base_id=int(pairs.base_id[start]), members=pairs.take(slice(start, stop)))
        for i, (start, stop) in enumerate(zip(starts, stops))
    ]
    logging.info(f'Grouped {len(pairs)} matched pairs into {len(groups)} match groups')
    return groups


def flatten_groups(groups: List[MatchGroup]) -> CandidatePairs:
    return CandidatePairs.concatenate([g.members for g in groups])


def cluster_groups(groups: List[MatchGroup]) -> List[CrossingCluster]:
    '''
    Connected components of the bipartite graph between match groups and the comparison
    soundings they matched. Clusters are numbered in order of their first base sounding.
    '''
    if len(groups) == 0:
        return []

    pairs = flatten_groups(groups)
    group_of_pair = np.repeat(np.arange(len(groups)), [len(g.members) for g in groups])
    unique_others, other_node = np.unique(pairs.other_id, return_inverse=True)

    n_groups = len(groups)
    n_nodes = n_groups + unique_others.size
    graph = coo_matrix(
        (np.ones(len(pairs), dtype='int8'), (group_of_pair, n_groups + other_node)),
        shape=(n_nodes, n_nodes),
    )
    _, labels = connected_components(graph, directed=False)

    group_labels = labels[:n_groups]
    # renumber components by the first group (lowest base_id) that belongs to them
    _, first_group = np.unique(group_labels, return_index=True)
    ordered_labels = group_labels[np.sort(first_group)]

    base_ids = np.array([g.base_id for g in groups], dtype='int64')
    pair_labels = group_labels[group_of_pair]

    clusters = []
    for cluster_id, label in enumerate(ordered_labels):
        clusters.append(CrossingCluster(
            cluster_id=cluster_id,
            base_ids=np.sort(base_ids[group_labels == label]),
            other_ids=np.unique(pairs.other_id[pair_labels == label]),
        ))
    logging.info(f'Found {len(clusters)} crossings across {n_groups} match groups')
    return clusters
