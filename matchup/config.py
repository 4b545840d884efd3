from dataclasses import asdict, dataclass, field, fields
import logging
import os
from typing import List, Optional, Tuple

import yaml

from matchup.errors import ConfigError
from matchup.policy import DEFAULT_MIN_SELF_CROSS_GAP_S, CrossInstrument, MatchPolicy, SelfCross

DEFAULT_DISTANCE_THRESHOLD_KM: float = 100.0
DEFAULT_TIME_THRESHOLD_S: float = 43200.0  # 12 hours
MIN_COMPARISON_FILES: int = 1


@dataclass(frozen=True)
class MatchupConfig:
    '''
    Thresholds and filters for one matchup job. Passed explicitly into every engine call.
    '''
    distance_threshold_km: float = DEFAULT_DISTANCE_THRESHOLD_KM
    time_threshold_s: float = DEFAULT_TIME_THRESHOLD_S
    flag0_only: bool = False
    policy: MatchPolicy = field(default_factory=CrossInstrument)

    def __post_init__(self):
        if not self.distance_threshold_km > 0:
            raise ConfigError(f'Distance threshold must be > 0, got {self.distance_threshold_km}')
        if not self.time_threshold_s > 0:
            raise ConfigError(f'Time threshold must be > 0, got {self.time_threshold_s}')
        if isinstance(self.policy, SelfCross) and not self.policy.min_gap_s >= 0:
            raise ConfigError(f'Minimum self-cross gap must be >= 0, got {self.policy.min_gap_s}')

    @property
    def self_cross(self) -> bool:
        return isinstance(self.policy, SelfCross)


@dataclass(frozen=True)
class JobDescriptor:
    output_file: str
    base_file: str
    comparison_files: Tuple[str, ...]
    distance_threshold_km: float = DEFAULT_DISTANCE_THRESHOLD_KM
    time_threshold_s: float = DEFAULT_TIME_THRESHOLD_S
    flag0_only: bool = False
    self_cross: bool = False
    min_self_cross_gap_s: float = DEFAULT_MIN_SELF_CROSS_GAP_S
    save_full_matches_as: Optional[str] = None
    read_full_matches: Optional[str] = None
    job_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'comparison_files', tuple(str(f) for f in self.comparison_files))
        if self.job_id is None:
            object.__setattr__(self, 'job_id', os.path.basename(self.output_file))

    def matchup_config(self) -> MatchupConfig:
        if len(self.comparison_files) < MIN_COMPARISON_FILES and self.read_full_matches is None:
            raise ConfigError(
                f'At least {MIN_COMPARISON_FILES} comparison file(s) required, got {len(self.comparison_files)}',
                job_id=self.job_id,
            )
        policy = SelfCross(self.min_self_cross_gap_s) if self.self_cross else CrossInstrument()
        try:
            return MatchupConfig(self.distance_threshold_km, self.time_threshold_s, self.flag0_only, policy)
        except ConfigError as e:
            raise e.with_job(self.job_id)

    @classmethod
    def from_dict(cls, params: dict) -> 'JobDescriptor':
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ConfigError(f'Unknown matchup keys: {", ".join(sorted(unknown))}', job_id=params.get('job_id'))

        missing = [k for k in ('output_file', 'base_file') if params.get(k) is None]
        if missing:
            raise ConfigError(f'Missing matchup keys: {", ".join(missing)}', job_id=params.get('job_id'))

        comparison_files = params.get('comparison_files', [])
        if isinstance(comparison_files, str):
            comparison_files = [comparison_files]
        return cls(**{**params, 'comparison_files': tuple(comparison_files)})

    def to_dict(self) -> dict:
        d = asdict(self)
        d['comparison_files'] = list(self.comparison_files)
        return {k: v for k, v in d.items() if v is not None}


def load_batch_config(config_file: str) -> List[JobDescriptor]:
    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f'Unable to read batch configuration: {e}') from e

    if not isinstance(config, dict) or not isinstance(config.get('matchups'), list):
        raise ConfigError(f'Batch configuration {config_file} must have a "matchups" list')

    if not all(isinstance(params, dict) for params in config['matchups']):
        raise ConfigError(f'Every entry of "matchups" in {config_file} must be a mapping')

    jobs = [JobDescriptor.from_dict(params) for params in config['matchups']]
    logging.info(f'Loaded {len(jobs)} matchup job(s) from {config_file}')
    return jobs


def dump_batch_config(jobs: List[JobDescriptor], config_file: str):
    with open(config_file, 'w') as f:
        yaml.safe_dump({'matchups': [job.to_dict() for job in jobs]}, f, sort_keys=False)
    logging.info(f'Wrote {len(jobs)} matchup job(s) to {config_file}')
