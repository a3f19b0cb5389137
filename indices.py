import datetime
import logging
import re
from typing import Iterable, List, Optional, Sequence

from errors import NoEligibleIndicesError


# Non-greedy prefix, then three runs of 2-4 digits optionally separated by dots
DAILY_INDEX = re.compile(r'^(.+?)((?:\d{2,4}\.*?){3})$')
DATE_LAYOUT = '%Y.%m.%d'


def index_age(name: str) -> Optional[datetime.date]:
    """Date embedded at the end of an index name, e.g. logs-2023.06.15.

    Returns None for names without a trailing YYYY.MM.DD, including suffixes
    that look numeric but are not that exact layout (app-20230615,
    app-15.06.2023) or are not a calendar date (app-2023.02.30).
    """
    match = DAILY_INDEX.match(name)
    if match is None:
        return None

    suffix = match.group(2)
    try:
        date = datetime.datetime.strptime(suffix, DATE_LAYOUT).date()
    except ValueError:
        return None

    # strptime tolerates single-digit fields, the layout does not. Years
    # below 1000 are zero padded by hand, strftime('%Y') does not pad them
    if f'{date.year:04d}.{date.month:02d}.{date.day:02d}' != suffix:
        return None

    return date


def eligible_indices(names: Iterable[str], skip: Sequence[str] = ()) -> List[str]:
    """Retirement candidates, oldest first.

    Skip-listed names and names without a date are never candidates. Ties on
    the date are broken by name so the order is total.
    """
    skipped, dated, nodate = 0, [], []
    for name in names:
        if name in skip:
            skipped += 1
            continue

        age = index_age(name)
        if age is None:
            nodate += [name]
            continue

        dated += [(age, name)]

    if nodate:
        logging.debug('indices without a date (never retired): %s', ', '.join(sorted(nodate)))

    if len(dated) == 0:
        raise NoEligibleIndicesError(f'no indices to remove ({skipped} skipped, {len(nodate)} without a date)')

    return [name for _, name in sorted(dated)]
