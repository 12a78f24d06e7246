import logging
import os

from .errors import ConfigError

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(message)s'


def configure_logging(level=None):
    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f'Unknown log level {level!r}')
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # substrate-interface logs every rpc frame at DEBUG
    logging.getLogger('substrateinterface').setLevel(max(logging.getLevelName(level), logging.INFO))
