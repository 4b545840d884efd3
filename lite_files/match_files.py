'''
netCDF files written for a matchup job: the full match file (every matched pair plus the
sounding locations, reloadable with read_full_matches) and the match group file.
'''

from datetime import datetime, UTC
import hashlib
import logging
import os
from typing import List, Optional

import numpy as np
import xarray as xr

from matchup.candidates import CandidatePairs
from matchup.config import MatchupConfig
from matchup.errors import InputError
from matchup.groups import CrossingCluster, cluster_groups, group_pairs
from matchup.parallel_matchups import MatchResult
from matchup.policy import DEFAULT_MIN_SELF_CROSS_GAP_S, CrossInstrument, SelfCross
from matchup.soundings import SoundingSequence
from utilities.encoding import matchup_encoding

BASE_LOCATIONS_GROUP = 'base_locations'
COMPARISON_LOCATIONS_GROUP = 'comparison_locations'
MATCHES_GROUP = 'matches'


def file_sha256(path: str) -> str:
    if not os.path.isfile(path):
        return ''
    sha = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(1 << 20), b''):
            sha.update(chunk)
    return sha.hexdigest()


def config_attrs(config: MatchupConfig) -> dict:
    attrs = {
        'distance_threshold_km': config.distance_threshold_km,
        'time_threshold_s': config.time_threshold_s,
        'flag0_only': int(config.flag0_only),
    }
    if config.self_cross:
        attrs['min_self_cross_gap_s'] = config.policy.min_gap_s
    return attrs


def config_from_attrs(attrs: dict, self_cross: bool) -> Optional[MatchupConfig]:
    '''
    Thresholds stored by config_attrs, or None for a file written without them
    '''
    if 'distance_threshold_km' not in attrs or 'time_threshold_s' not in attrs:
        return None
    if self_cross:
        policy = SelfCross(float(attrs.get('min_self_cross_gap_s', DEFAULT_MIN_SELF_CROSS_GAP_S)))
    else:
        policy = CrossInstrument()
    return MatchupConfig(float(attrs['distance_threshold_km']), float(attrs['time_threshold_s']),
                         bool(attrs.get('flag0_only', 0)), policy)


def pairs_to_dataset(pairs: CandidatePairs, self_cross: bool = False,
                     config: Optional[MatchupConfig] = None) -> xr.Dataset:
    ds = xr.Dataset(
        data_vars={
            'base_id': ('pair', pairs.base_id,
                        {'description': '0-based index of the base sounding in base_locations'}),
            'other_id': ('pair', pairs.other_id,
                         {'description': '0-based index of the comparison sounding in comparison_locations'}),
            'distance_km': ('pair', pairs.distance_km,
                            {'units': 'km', 'description': 'Great circle distance between the two soundings'}),
            'time_diff_s': ('pair', pairs.time_diff_s,
                            {'units': 's', 'description': 'Absolute time difference between the two soundings'}),
        },
        attrs={'self_cross': int(self_cross)},
    )
    if config is not None:
        ds.attrs.update(config_attrs(config))
    return ds


def save_full_matches(result: MatchResult, nc_file: str):
    logging.info(f'Saving full match netCDF file: {nc_file}')
    base_ds = result.base.to_dataset()
    other_ds = result.other.to_dataset()
    matches_ds = pairs_to_dataset(result.pairs, result.self_cross, result.config)

    base_ds.to_netcdf(nc_file, mode='w', group=BASE_LOCATIONS_GROUP, encoding=matchup_encoding(base_ds))
    other_ds.to_netcdf(nc_file, mode='a', group=COMPARISON_LOCATIONS_GROUP, encoding=matchup_encoding(other_ds))
    matches_ds.to_netcdf(nc_file, mode='a', group=MATCHES_GROUP, encoding=matchup_encoding(matches_ds))
    logging.info(f'Done saving full match file {nc_file}')


def _open_group(nc_file: str, group: str) -> xr.Dataset:
    try:
        with xr.open_dataset(nc_file, group=group, decode_times=False, decode_timedelta=False) as ds:
            return ds.load()
    except OSError as e:
        raise InputError(f'Unable to read group "{group}" of full match file: {e}', file=nc_file) from e


def read_full_matches(nc_file: str) -> MatchResult:
    '''
    Rebuilds a MatchResult from a file written by save_full_matches. Groups are recomputed
    from the stored pairs with the same grouping used for fresh matches.
    '''
    if not os.path.exists(nc_file):
        raise InputError('Full match file does not exist', file=nc_file)
    logging.info(f'Reading previous matched soundings from {nc_file}')

    try:
        base = SoundingSequence.from_dataset(_open_group(nc_file, BASE_LOCATIONS_GROUP))
        matches_ds = _open_group(nc_file, MATCHES_GROUP)
        self_cross = bool(matches_ds.attrs.get('self_cross', 0))
        other = base if self_cross else SoundingSequence.from_dataset(_open_group(nc_file, COMPARISON_LOCATIONS_GROUP))
    except InputError as e:
        e.file = e.file or nc_file
        raise

    pairs = CandidatePairs(
        base_id=matches_ds['base_id'].values.astype('int64'),
        other_id=matches_ds['other_id'].values.astype('int64'),
        distance_km=matches_ds['distance_km'].values.astype('float64'),
        time_diff_s=matches_ds['time_diff_s'].values.astype('float64'),
    )
    if len(pairs) > 0 and (pairs.base_id.max() >= len(base) or pairs.other_id.max() >= len(other)):
        raise InputError('Matched pair ids are out of range of the stored sounding locations', file=nc_file)

    config = config_from_attrs(matches_ds.attrs, self_cross)
    return MatchResult(base=base, other=other, pairs=pairs, groups=group_pairs(pairs), self_cross=self_cross,
                       config=config)


def _crossing_variables(prefix: str, seq: SoundingSequence, ranges: np.ndarray) -> dict:
    dims = ('crossing', 'start_end')
    return {
        f'crossing_{prefix}_id': (dims, ranges,
                                  {'description': f'First and last {prefix} sounding (sequence index) in the crossing'}),
        f'crossing_{prefix}_sounding_id': (dims, seq.sounding_id[ranges]),
        f'crossing_{prefix}_source_index': (dims, seq.source_index[ranges]),
        f'crossing_{prefix}_file_index': (dims, seq.file_index[ranges],
                                          {'description': '0-based index of the sounding within its source file'}),
    }


def groups_to_dataset(result: MatchResult, clusters: Optional[List[CrossingCluster]] = None,
                      config: Optional[MatchupConfig] = None) -> xr.Dataset:
    '''
    Match groups as a CF contiguous ragged array: one row per group on the match_group
    dimension, its members stored consecutively on the match dimension.
    '''
    base, other, groups = result.base, result.other, result.groups
    members = CandidatePairs.concatenate([g.members for g in groups])
    base_ids = np.array([g.base_id for g in groups], dtype='int64')
    member_count = np.array([len(g.members) for g in groups], dtype='int64')
    other_ids = members.other_id

    data_vars = {
        'base_file': ('base_source', np.array(base.sources, dtype=object)),
        'base_file_sha256': ('base_source', np.array([file_sha256(f) for f in base.sources], dtype=object)),
        'comparison_file': ('comparison_source', np.array(other.sources, dtype=object)),
        'comparison_file_sha256': ('comparison_source',
                                   np.array([file_sha256(f) for f in other.sources], dtype=object)),

        'group_id': ('match_group', np.array([g.group_id for g in groups], dtype='int64')),
        'base_id': ('match_group', base_ids),
        'base_sounding_id': ('match_group', base.sounding_id[base_ids]),
        'base_source_index': ('match_group', base.source_index[base_ids],
                              {'description': '0-based index into base_file'}),
        'base_file_index': ('match_group', base.file_index[base_ids],
                            {'description': '0-based index of the sounding within its base file'}),
        'base_latitude': ('match_group', base.lat[base_ids], {'units': 'degrees_north'}),
        'base_longitude': ('match_group', base.lon[base_ids], {'units': 'degrees_east'}),
        'base_time': ('match_group', base.time[base_ids], {'units': 's'}),
        'base_quality_flag': ('match_group', base.quality_flag[base_ids]),
        'member_count': ('match_group', member_count,
                         {'sample_dimension': 'match',
                          'description': 'Number of comparison soundings matched to this base sounding'}),

        'other_id': ('match', other_ids),
        'comparison_sounding_id': ('match', other.sounding_id[other_ids]),
        'comparison_source_index': ('match', other.source_index[other_ids],
                                    {'description': '0-based index into comparison_file'}),
        'comparison_file_index': ('match', other.file_index[other_ids],
                                  {'description': '0-based index of the sounding within its comparison file'}),
        'comparison_latitude': ('match', other.lat[other_ids], {'units': 'degrees_north'}),
        'comparison_longitude': ('match', other.lon[other_ids], {'units': 'degrees_east'}),
        'comparison_time': ('match', other.time[other_ids], {'units': 's'}),
        'comparison_quality_flag': ('match', other.quality_flag[other_ids]),
        'distance_km': ('match', members.distance_km, {'units': 'km'}),
        'time_diff_s': ('match', members.time_diff_s, {'units': 's'}),
    }

    if clusters is not None:
        base_ranges = np.array([c.base_range for c in clusters], dtype='int64').reshape(-1, 2)
        other_ranges = np.array([c.other_range for c in clusters], dtype='int64').reshape(-1, 2)
        data_vars.update(_crossing_variables('base', base, base_ranges))
        data_vars.update(_crossing_variables('comparison', other, other_ranges))
        data_vars['crossing_group_count'] = ('crossing', np.array([c.base_ids.size for c in clusters], dtype='int64'))

    attrs = {
        'title': 'Self-crossing sounding matches' if result.self_cross else 'Cross-instrument sounding matches',
        'created_on': datetime.now(UTC).strftime('%Y-%m-%dT%H:%M:%S'),
        'self_cross': int(result.self_cross),
    }
    if config is not None:
        attrs.update(config_attrs(config))

    return xr.Dataset(data_vars=data_vars, attrs=attrs)


def write_match_groups(result: MatchResult, nc_file: str, config: Optional[MatchupConfig] = None,
                       clusters: bool = True) -> xr.Dataset:
    crossings = cluster_groups(result.groups) if clusters else None
    ds = groups_to_dataset(result, crossings, config)
    logging.info(f'Saving {len(result.groups)} match groups to {nc_file}')
    ds.to_netcdf(nc_file, encoding=matchup_encoding(ds))
    return ds
