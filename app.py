import argparse
from datetime import date, datetime
import logging
import sys
from typing import List, Optional

from lite_files.matchup_job import MatchupJob, run_batch
from lite_files.scanning import DEFAULT_OUTFILE_FORMAT, build_matchup_jobs
from matchup.config import (DEFAULT_DISTANCE_THRESHOLD_KM, DEFAULT_TIME_THRESHOLD_S, JobDescriptor,
                            dump_batch_config, load_batch_config)
from matchup.errors import MatchupError
from matchup.policy import DEFAULT_MIN_SELF_CROSS_GAP_S
from utilities.logconfig import configure_logging


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise argparse.ArgumentTypeError(f'Unable to parse date {value!r}, expected YYYY-MM-DD')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Find matched soundings between lite files')
    parser.add_argument('-n', '--nprocs', type=int, default=8,
                        help='Number of processes to use for matching soundings')
    parser.add_argument('--log-level', default='INFO', help='Logging level (DEBUG, INFO, WARNING)')
    parser.add_argument('--log-dir', default='/tmp/logs', help='Directory for log files')
    subparsers = parser.add_subparsers(dest='command', required=True)

    one = subparsers.add_parser('one', help='Match one base lite file against one or more comparison lite files')
    one.add_argument('output_file', help='Path to write the match group netCDF file')
    one.add_argument('base_file', help='Lite file providing the base soundings')
    one.add_argument('comparison_files', nargs='+', help='Lite file(s) to compare against')
    one.add_argument('-0', '--flag0-only', action='store_true',
                     help='Only match good quality (flag = 0) soundings')
    one.add_argument('-f', '--save-full-matches-as',
                     help='Also save every matched pair to this netCDF file (can be 100s of MB)')
    one.add_argument('-i', '--read-full-matches',
                     help='Group the pairs from a file written by --save-full-matches-as instead of matching')
    one.add_argument('--self-cross', action='store_true',
                     help='Treat the base and comparison files as one track compared against itself')
    one.add_argument('--min-self-cross-gap', type=float, default=DEFAULT_MIN_SELF_CROSS_GAP_S,
                     help='Seconds two soundings from one file must be apart to count as a self crossing')
    one.add_argument('--distance-km', type=float, default=DEFAULT_DISTANCE_THRESHOLD_KM,
                     help='Maximum distance between matched soundings in km')
    one.add_argument('--time-threshold', type=float, default=DEFAULT_TIME_THRESHOLD_S,
                     help='Maximum time difference between matched soundings in seconds')

    multi = subparsers.add_parser('multi', help='Run the matchups listed in a YAML configuration file')
    multi.add_argument('config_file')

    make_config = subparsers.add_parser('make-config',
                                        help='Write a configuration for "multi" from date-based directories')
    make_config.add_argument('base_dir_structure',
                             help='strftime pattern of the base lite file directories, e.g. /data/%%Y/%%m/%%d/lite')
    make_config.add_argument('comparison_dir_structure', help='Same as base_dir_structure for comparison files')
    make_config.add_argument('start_date', type=parse_date, help='First base date, YYYY-MM-DD')
    make_config.add_argument('end_date', type=parse_date, help='Last base date (inclusive), YYYY-MM-DD')
    make_config.add_argument('ndays_buffer', type=int,
                             help='Days either side of each base date to take comparison files from')
    make_config.add_argument('config_file', help='Path to write the configuration file')
    make_config.add_argument('outfile_format', nargs='?', default=DEFAULT_OUTFILE_FORMAT,
                             help='strftime pattern for the output match file names')
    make_config.add_argument('-0', '--flag0-only', action='store_true')
    make_config.add_argument('--self-cross', action='store_true')
    return parser


def job_from_args(args: argparse.Namespace) -> JobDescriptor:
    return JobDescriptor(
        output_file=args.output_file,
        base_file=args.base_file,
        comparison_files=tuple(args.comparison_files),
        distance_threshold_km=args.distance_km,
        time_threshold_s=args.time_threshold,
        flag0_only=args.flag0_only,
        self_cross=args.self_cross,
        min_self_cross_gap_s=args.min_self_cross_gap,
        save_full_matches_as=args.save_full_matches_as,
        read_full_matches=args.read_full_matches,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(log_level=args.log_level, logs_directory=args.log_dir)

    try:
        if args.command == 'one':
            MatchupJob(job_from_args(args), nprocs=args.nprocs, show_progress=True).run()
        elif args.command == 'multi':
            run_batch(load_batch_config(args.config_file), nprocs=args.nprocs)
        elif args.command == 'make-config':
            jobs = build_matchup_jobs(args.base_dir_structure, args.comparison_dir_structure, args.start_date,
                                      args.end_date, args.ndays_buffer, args.outfile_format,
                                      flag0_only=args.flag0_only, self_cross=args.self_cross)
            dump_batch_config(jobs, args.config_file)
    except MatchupError as e:
        logging.error(e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
