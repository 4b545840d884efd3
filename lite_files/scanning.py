'''
Builds batch matchup configurations from a date-based directory layout, where each day's
lite file lives alone in a directory named by a strftime pattern (e.g. /data/%Y/%m/%d/lite).
'''

from datetime import date, timedelta
from glob import glob
import logging
import os
from typing import Iterator, List, Optional, Tuple

from matchup.config import JobDescriptor
from matchup.errors import InputError

DEFAULT_OUTFILE_FORMAT = 'oco_lite_matches_%Y%m%d.nc4'


def dir_for_date(dir_structure: str, day: date) -> str:
    return day.strftime(dir_structure)


def matchup_dates(start_date: date, end_date: date, ndays_buffer: int) -> Iterator[Tuple[date, List[date]]]:
    '''
    Yields each base date from start_date to end_date (inclusive) with the comparison
    dates within ndays_buffer days on either side of it
    '''
    day = start_date
    while day <= end_date:
        yield day, [day + timedelta(days=d) for d in range(-ndays_buffer, ndays_buffer + 1)]
        day += timedelta(days=1)


def find_nc4_file(directory: str) -> Optional[str]:
    if not os.path.isdir(directory):
        logging.warning(f'Directory {directory} does not exist')
        return None

    files = sorted(glob(os.path.join(directory, '*.nc4')))
    if len(files) > 1:
        raise InputError(f'Found {len(files)} .nc4 files where one was expected', file=directory)
    return files[0] if files else None


def build_matchup_jobs(base_dir_structure: str, comparison_dir_structure: str, start_date: date, end_date: date,
                       ndays_buffer: int, outfile_format: str = DEFAULT_OUTFILE_FORMAT,
                       flag0_only: bool = False, self_cross: bool = False) -> List[JobDescriptor]:
    jobs = []
    for base_date, comparison_dates in matchup_dates(start_date, end_date, ndays_buffer):
        base_file = find_nc4_file(dir_for_date(base_dir_structure, base_date))
        if base_file is None:
            logging.warning(f'Skipping matchup for {base_date} due to missing base file')
            continue

        comparison_files = [find_nc4_file(dir_for_date(comparison_dir_structure, d)) for d in comparison_dates]
        if any(f is None for f in comparison_files):
            logging.warning(f'Skipping matchup for {base_date} due to at least one missing comparison file')
            continue

        jobs.append(JobDescriptor(
            output_file=base_date.strftime(outfile_format),
            base_file=base_file,
            comparison_files=tuple(comparison_files),
            flag0_only=flag0_only,
            self_cross=self_cross,
        ))

    logging.info(f'Built {len(jobs)} matchup job(s) between {start_date} and {end_date}')
    return jobs
