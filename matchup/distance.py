'''
Great circle distances between soundings.

Uses the haversine formula on a sphere with the mean Earth radius. This is not an
ellipsoidal model; at the ~100 km scale of the matchup thresholds the difference
is negligible.
'''

import numpy as np

EARTH_RADIUS_KM: float = 6371.0


def valid_coordinates(lat: np.ndarray, lon: np.ndarray) -> np.ndarray:
    '''
    True where lat is within [-90, 90] and lon within [-180, 360]. NaNs are invalid.
    '''
    lat = np.asarray(lat, dtype='float64')
    lon = np.asarray(lon, dtype='float64')
    with np.errstate(invalid='ignore'):
        return (np.abs(lat) <= 90.0) & (lon >= -180.0) & (lon <= 360.0)


def great_circle_distance(lat1, lon1, lat2, lon2) -> np.ndarray:
    '''
    Haversine distance in km. Invalid coordinates give NaN rather than raising.
    '''
    lat1 = np.asarray(lat1, dtype='float64')
    lon1 = np.asarray(lon1, dtype='float64')
    lat2 = np.asarray(lat2, dtype='float64')
    lon2 = np.asarray(lon2, dtype='float64')

    valid = valid_coordinates(lat1, lon1) & valid_coordinates(lat2, lon2)

    with np.errstate(invalid='ignore'):
        phi1 = np.radians(lat1)
        phi2 = np.radians(lat2)
        dphi = phi2 - phi1
        dlam = np.radians(lon2 - lon1)

        a = np.sin(dphi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlam / 2.0) ** 2
        central_angle = 2.0 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))

    return np.where(valid, central_angle * EARTH_RADIUS_KM, np.nan)


def within_distance(distance_km: np.ndarray, max_distance_km: float) -> np.ndarray:
    # NaN compares False, so invalid coordinates never match
    with np.errstate(invalid='ignore'):
        return distance_km <= max_distance_km
