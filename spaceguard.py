#!/usr/bin/env python3

from elastic import AGGREGATES, Cluster
from errors import ConfigError
from retirer import Retirer

import argparse
import logging
import os
import re
import signal
import sys
import urllib.parse
from typing import List, NamedTuple, Optional


__version__ = '3.1.0'

DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'μs': 1e-6,
    'ms': 1e-3,
    's':  1,
    'm':  60,
    'h':  3600,
}
DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)')


class Settings(NamedTuple):
    server: str
    space: int
    interval: float
    skip: List[str]
    aggregate: str
    timeout: float


def parse_duration(value: str) -> float:
    """Seconds in a duration string such as 1h, 90m or 1h30m15.5s."""
    pos, total = 0, 0.0
    while pos < len(value):
        match = DURATION_PART.match(value, pos)
        if match is None:
            raise ConfigError(f'invalid duration {value!r}')
        total += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ConfigError(f'invalid duration {value!r}')
    if total <= 0:
        raise ConfigError(f'non-positive duration {value!r}')

    return total


def parse_server(value: str) -> str:
    try:
        url = urllib.parse.urlsplit(value)
    except ValueError as e:
        raise ConfigError(f'invalid url {value}: {e}') from e

    if url.scheme not in ['http', 'https'] or not url.netloc:
        raise ConfigError(f'invalid url {value}: expected http(s)://host[:port]')

    return value.rstrip('/')


def parse_args(argv: Optional[List[str]] = None) -> Settings:
    parser = argparse.ArgumentParser(description='Delete the oldest dated Elasticsearch index while disk space is low.')
    parser.add_argument('--version', action='version', version=__version__)
    parser.add_argument('--debug', '-d', action='store_true')
    parser.add_argument('--server', default='http://localhost:9200', help='elasticsearch address')
    parser.add_argument('--space', type=int, default=15, help='minimum free disk space in percent')
    parser.add_argument('--duration', default='1h', help='check interval, e.g. 30m or 1h')
    parser.add_argument('--skip', action='append', default=[], help='never delete this index (repeatable)')
    parser.add_argument('--aggregate', choices=sorted(AGGREGATES), default='min',
                        help='how node free space is combined: lowest node or last reported node')
    parser.add_argument('--timeout', type=float, default=100, help='http request timeout in secs')

    args = parser.parse_args(argv)

    if args.debug:
        setup_debug_logging()

    try:
        server = parse_server(args.server)
        interval = parse_duration(args.duration)
    except ConfigError as e:
        parser.error(str(e))

    if not 0 <= args.space <= 100:
        parser.error(f'--space must be between 0 and 100, got {args.space}')
    if args.timeout <= 0:
        parser.error(f'--timeout must be positive, got {args.timeout}')

    return Settings(
        server    = server,
        space     = args.space,
        interval  = interval,
        skip      = args.skip,
        aggregate = args.aggregate,
        timeout   = args.timeout,
    )


def setup_debug_logging() -> None:
    logging.getLogger().setLevel(logging.DEBUG)

    basepath = os.path.dirname(os.path.abspath(__file__))

    class LogFilter(logging.Filter):
        def filter(self, record):
            # Filter out debug logs generated from other modules (eg urllib3)
            if record.levelname == 'DEBUG':
                if os.path.dirname(os.path.abspath(record.pathname)) != basepath:
                    return 0
            return 1

    # Log filters don't propagate like the log level
    # https://docs.python.org/3/howto/logging.html#logging-flow
    for handler in logging.root.handlers:
        handler.addFilter(LogFilter())


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s:%(levelname)s:%(name)s:%(threadName)s:%(message)s')

    settings = parse_args(argv)
    logging.info('spaceguard %s watching %s', __version__, settings.server)

    cluster = Cluster(settings.server, timeout=settings.timeout)
    retirer = Retirer(cluster, settings.space, settings.interval, settings.skip, aggregate=settings.aggregate)
    retirer.start()

    # Gracefully stop on terminating signal

    def stop(signum, frame):
        logging.info('received signal %s', signal.Signals(signum).name)
        retirer.stop()

    for s in [signal.SIGINT, signal.SIGTERM]:
        signal.signal(s, stop)

    # The main thread has to stay responsive to signals, join with a timeout
    while retirer.is_alive():
        retirer.join(1)

    return 0


if __name__ == '__main__':
    sys.exit(main())
