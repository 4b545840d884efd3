"""
Encoding used when saving matchup netCDF files
"""

import xarray as xr
import numpy as np


def matchup_encoding(ds: xr.Dataset) -> dict:
    encoding = {}
    for var in ds.variables:
        dtype = ds[var].dtype
        # netCDF4 cannot compress variable length strings
        if dtype.kind in ("O", "U", "S"):
            continue
        encoding[var] = {"complevel": 5, "zlib": True}

        if any(x in var for x in ["latitude", "longitude", "distance", "time"]):
            encoding[var]["dtype"] = "float64"
            encoding[var]["_FillValue"] = np.finfo(np.float64).max
        # integer fill values would make xarray decode ids as floats
        elif any(x in var for x in ["quality_flag", "source_index"]):
            encoding[var]["dtype"] = "int16"
            encoding[var]["_FillValue"] = None
        elif any(x in var for x in ["_id", "index", "count"]):
            encoding[var]["dtype"] = "int64"
            encoding[var]["_FillValue"] = None
    return encoding
