import logging
import os
from datetime import datetime


def configure_logging(file_timestamp: bool = True, log_level: str = 'INFO', testing: bool = False,
                      logs_directory: str = '/tmp/logs') -> None:
    for handler in logging.root.handlers:
        handler.close()
    logging.root.handlers = []

    if testing:
        handlers = [logging.StreamHandler()]
    else:
        os.makedirs(logs_directory, exist_ok=True)
        log_filename = f'matchup_{datetime.now().strftime("%Y%m%dT%H%M%S") if file_timestamp else "log"}.log'
        logfile_path = os.path.join(logs_directory, log_filename)
        handlers = [
            logging.FileHandler(logfile_path),
            logging.StreamHandler()
        ]

    logging.basicConfig(
        level=get_log_level(log_level),
        format='[%(levelname)s] %(asctime)s - %(message)s',
        handlers=handlers
    )
    if not testing:
        logging.debug(f'Logging to {logfile_path}')


def get_log_level(log_level: str) -> int:
    """
    Defaults to logging.INFO
    """
    value_map = {
        'INFO': logging.INFO,
        'DEBUG': logging.DEBUG,
        'WARNING': logging.WARNING,
        'WARN': logging.WARNING,
        'ERROR': logging.ERROR,
    }

    return value_map.get(log_level.upper(), logging.INFO)
