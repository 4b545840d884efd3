from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional

import numpy as np
import xarray as xr

from matchup.errors import InputError


@dataclass(frozen=True)
class Sounding:
    id: int
    source_index: int
    file_index: int
    sounding_id: int
    lat: float
    lon: float
    time: float
    quality_flag: int


@dataclass
class SoundingArrays:
    '''
    Raw arrays for the soundings of one source file, as handed over by the file reader.
    Longitudes must already be normalized to a consistent convention.
    '''
    lat: np.ndarray
    lon: np.ndarray
    time: np.ndarray
    quality_flag: np.ndarray
    source_index: int = 0
    source: str = ''
    sounding_id: Optional[np.ndarray] = None

    def validate(self):
        name = self.source or f'source {self.source_index}'
        lengths = {
            'latitude': np.size(self.lat),
            'longitude': np.size(self.lon),
            'time': np.size(self.time),
            'quality_flag': np.size(self.quality_flag),
        }
        if self.sounding_id is not None:
            lengths['sounding_id'] = np.size(self.sounding_id)

        if len(set(lengths.values())) > 1:
            sizes = ', '.join(f'{k} = {v}' for k, v in lengths.items())
            raise InputError(f'Mismatched array lengths: {sizes}', file=name)
        if lengths['time'] == 0:
            raise InputError('No soundings in source', file=name)


def _read_only(arr: np.ndarray) -> np.ndarray:
    # the caller keeps write access to its own array
    view = np.asarray(arr).view()
    view.flags.writeable = False
    return view


class SoundingSequence:
    '''
    Read-only, time ordered view over the soundings of one or more source files.

    Files are concatenated in order of their source index and stable sorted on time,
    so soundings with equal times stay ordered by source index and then by their
    position within the file. Sounding ids are positions in this merged order.
    '''

    def __init__(self, sources: List[str], source_index: np.ndarray, file_index: np.ndarray,
                 sounding_id: np.ndarray, lat: np.ndarray, lon: np.ndarray, time: np.ndarray,
                 quality_flag: np.ndarray):
        self.sources: List[str] = list(sources)
        self.source_index: np.ndarray = _read_only(source_index)
        self.file_index: np.ndarray = _read_only(file_index)
        self.sounding_id: np.ndarray = _read_only(sounding_id)
        self.lat: np.ndarray = _read_only(lat)
        self.lon: np.ndarray = _read_only(lon)
        self.time: np.ndarray = _read_only(time)
        self.quality_flag: np.ndarray = _read_only(quality_flag)

    @classmethod
    def from_arrays(cls, arrays: Iterable[SoundingArrays]) -> 'SoundingSequence':
        files = sorted(arrays, key=lambda a: a.source_index)
        if len(files) == 0:
            raise InputError('At least one source of soundings is required')

        seen = set()
        for f in files:
            f.validate()
            if f.source_index in seen:
                raise InputError(f'Duplicate source index {f.source_index}', file=f.source or None)
            seen.add(f.source_index)

        n_sources = files[-1].source_index + 1
        sources = [''] * n_sources
        for f in files:
            sources[f.source_index] = f.source

        source_index = np.concatenate([np.full(np.size(f.time), f.source_index, dtype='int32') for f in files])
        file_index = np.concatenate([np.arange(np.size(f.time), dtype='int64') for f in files])
        sounding_id = np.concatenate([
            np.asarray(f.sounding_id, dtype='int64').ravel() if f.sounding_id is not None
            else np.arange(np.size(f.time), dtype='int64')
            for f in files
        ])
        lat = np.concatenate([np.asarray(f.lat, dtype='float64').ravel() for f in files])
        lon = np.concatenate([np.asarray(f.lon, dtype='float64').ravel() for f in files])
        time = np.concatenate([np.asarray(f.time, dtype='float64').ravel() for f in files])
        quality_flag = np.concatenate([np.asarray(f.quality_flag, dtype='int16').ravel() for f in files])

        order = np.argsort(time, kind='stable')
        logging.debug(f'Merged {len(files)} source(s) into a sequence of {order.size} soundings')
        return cls(
            sources,
            source_index[order],
            file_index[order],
            sounding_id[order],
            lat[order],
            lon[order],
            time[order],
            quality_flag[order],
        )

    def __len__(self) -> int:
        return self.time.size

    def __getitem__(self, i: int) -> Sounding:
        if i < 0:
            i += len(self)
        if not 0 <= i < len(self):
            raise IndexError(f'Sounding index {i} out of range for sequence of length {len(self)}')
        return Sounding(
            id=int(i),
            source_index=int(self.source_index[i]),
            file_index=int(self.file_index[i]),
            sounding_id=int(self.sounding_id[i]),
            lat=float(self.lat[i]),
            lon=float(self.lon[i]),
            time=float(self.time[i]),
            quality_flag=int(self.quality_flag[i]),
        )

    def soundings_within(self, time_lo: float, time_hi: float) -> range:
        '''
        Contiguous range of ids with time_lo <= time <= time_hi
        '''
        start, stop = self.window_bounds(np.asarray([time_lo]), np.asarray([time_hi]))
        return range(int(start[0]), int(max(start[0], stop[0])))

    def window_bounds(self, time_lo: np.ndarray, time_hi: np.ndarray):
        '''
        Vectorized soundings_within: returns start and stop id arrays
        '''
        start = np.searchsorted(self.time, time_lo, side='left')
        stop = np.searchsorted(self.time, time_hi, side='right')
        return start, np.maximum(start, stop)

    @property
    def n_sources(self) -> int:
        return len(self.sources)

    def to_dataset(self) -> xr.Dataset:
        ds = xr.Dataset(
            data_vars={
                'source_file': ('source', np.array(self.sources, dtype=object),
                                {'description': 'Source lite files that these soundings came from'}),
                'source_index': ('sounding', self.source_index,
                                 {'description': 'Index of the source_file variable this sounding came from'}),
                'file_index': ('sounding', self.file_index,
                               {'description': '0-based index of the sounding within its source file'}),
                'sounding_id': ('sounding', self.sounding_id),
                'time': ('sounding', self.time, {'units': 's', 'description': 'Seconds since the epoch of the source files'}),
                'longitude': ('sounding', self.lon, {'units': 'degrees_east'}),
                'latitude': ('sounding', self.lat, {'units': 'degrees_north'}),
                'quality_flag': ('sounding', self.quality_flag, {'description': '0 = good, 1 = bad'}),
            }
        )
        return ds

    @classmethod
    def from_dataset(cls, ds: xr.Dataset) -> 'SoundingSequence':
        '''
        Rebuild a sequence saved with to_dataset. Order (and therefore ids) is kept as stored.
        '''
        missing = [v for v in ('source_file', 'source_index', 'file_index', 'sounding_id', 'time',
                               'longitude', 'latitude', 'quality_flag') if v not in ds.variables]
        if missing:
            raise InputError(f'Sounding locations are missing variables: {", ".join(missing)}')

        time = ds['time'].values.astype('float64')
        if np.any(np.diff(time) < 0):
            raise InputError('Stored sounding locations are not sorted by time')

        return cls(
            [str(s) for s in ds['source_file'].values],
            ds['source_index'].values.astype('int32'),
            ds['file_index'].values.astype('int64'),
            ds['sounding_id'].values.astype('int64'),
            ds['latitude'].values.astype('float64'),
            ds['longitude'].values.astype('float64'),
            time,
            ds['quality_flag'].values.astype('int16'),
        )
