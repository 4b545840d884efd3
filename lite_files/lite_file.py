import logging
import os

import numpy as np
import xarray as xr

from matchup.errors import InputError
from matchup.soundings import SoundingArrays

LITE_FILE_VARIABLES = {
    'latitude': 'latitude',
    'longitude': 'longitude',
    'time': 'time',
    'quality_flag': 'xco2_quality_flag',
    'sounding_id': 'sounding_id',
}


def normalize_longitude(lon: np.ndarray) -> np.ndarray:
    '''
    Wrap longitudes into [-180, 180)
    '''
    return (np.asarray(lon, dtype='float64') + 180.0) % 360.0 - 180.0


def load_lite_file(lite_file: str, source_index: int = 0, variables: dict = LITE_FILE_VARIABLES) -> SoundingArrays:
    '''
    Reads the geolocation, time and quality flag arrays of one lite file. Time is left
    as numeric seconds since the file epoch.
    '''
    if not os.path.exists(lite_file):
        raise InputError('Lite file does not exist', file=lite_file)

    logging.info(f'Reading soundings from {lite_file}')
    try:
        ds = xr.open_dataset(lite_file, decode_times=False, decode_timedelta=False)
    except (OSError, ValueError) as e:
        raise InputError(f'Unable to open lite file: {e}', file=lite_file) from e

    with ds:
        missing = [v for k, v in variables.items() if k != 'sounding_id' and v not in ds.variables]
        if missing:
            raise InputError(f'Lite file is missing variables: {", ".join(missing)}', file=lite_file)

        sounding_id = None
        if variables.get('sounding_id') in ds.variables:
            sounding_id = ds[variables['sounding_id']].values.astype('int64')

        arrays = SoundingArrays(
            lat=ds[variables['latitude']].values.astype('float64'),
            lon=normalize_longitude(ds[variables['longitude']].values),
            time=ds[variables['time']].values.astype('float64'),
            quality_flag=ds[variables['quality_flag']].values.astype('int16'),
            source_index=source_index,
            source=lite_file,
            sounding_id=sounding_id,
        )

    arrays.validate()
    logging.debug(f'Read {arrays.time.size} soundings from {lite_file}')
    return arrays
