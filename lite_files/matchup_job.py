import logging
from typing import List, Optional, Tuple

from lite_files.lite_file import load_lite_file
from lite_files.match_files import read_full_matches, save_full_matches, write_match_groups
from matchup.config import JobDescriptor, MatchupConfig
from matchup.errors import BatchError, MatchupError
from matchup.parallel_matchups import MatchResult, find_matches
from matchup.soundings import SoundingSequence


def unique_paths(paths: List[str]) -> List[str]:
    seen = set()
    unique = []
    for p in paths:
        if p not in seen:
            seen.add(p)
            unique.append(p)
    return unique


class MatchupJob:
    '''
    Runs one job descriptor: reads the lite files (or a previous full match file), finds
    the matches, optionally saves the full matches, and writes the match groups.
    '''

    def __init__(self, job: JobDescriptor, nprocs: int = 1, show_progress: bool = False):
        self.job: JobDescriptor = job
        self.nprocs: int = nprocs
        self.show_progress: bool = show_progress
        self.config: MatchupConfig = job.matchup_config()

    def load_sequences(self) -> Tuple[SoundingSequence, Optional[SoundingSequence]]:
        if self.config.self_cross:
            # one track: the base file and its neighbours compared against themselves
            paths = unique_paths([self.job.base_file, *self.job.comparison_files])
            track = SoundingSequence.from_arrays([load_lite_file(p, i) for i, p in enumerate(paths)])
            return track, None

        base = SoundingSequence.from_arrays([load_lite_file(self.job.base_file, 0)])
        other = SoundingSequence.from_arrays(
            [load_lite_file(p, i) for i, p in enumerate(self.job.comparison_files)]
        )
        return base, other

    def find_or_read_matches(self) -> MatchResult:
        if self.job.read_full_matches is not None:
            return read_full_matches(self.job.read_full_matches)

        logging.info(f'Looking for matches for {self.job.base_file}')
        base, other = self.load_sequences()
        result = find_matches(base, other, self.config, nprocs=self.nprocs, show_progress=self.show_progress)
        if self.job.save_full_matches_as is not None:
            save_full_matches(result, self.job.save_full_matches_as)
        return result

    def run(self) -> MatchResult:
        try:
            result = self.find_or_read_matches()
            logging.info('Grouping matches')
            # thresholds stored with reloaded pairs take precedence
            write_match_groups(result, self.job.output_file, result.config or self.config)
        except MatchupError as e:
            raise e.with_job(self.job.job_id)
        logging.info(f'Job {self.job.job_id} complete')
        return result


def run_batch(jobs: List[JobDescriptor], nprocs: int = 1) -> List[Optional[MatchResult]]:
    '''
    Runs every job even if some fail; failures are logged and raised together as a
    BatchError once all jobs have finished.
    '''
    results = []
    errors = []
    for job in jobs:
        try:
            results.append(MatchupJob(job, nprocs=nprocs).run())
        except Exception as e:
            logging.exception(f'Matchup job {job.job_id} failed: {e}')
            errors.append(e)
            results.append(None)

    if errors:
        raise BatchError(errors)
    return results
