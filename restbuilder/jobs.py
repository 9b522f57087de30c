'''
**restbuilder.jobs**
-----------------

Adapts "hh:mm;hh:mm;" schedule settings to an external job scheduler.
restbuilder does not run jobs itself, anything implementing `JobScheduler`
(an APScheduler wrapper, a cron bridge...) can be handed in.
'''
import logging
from collections.abc import Callable, Mapping
from typing import Literal, NamedTuple, Protocol

logger = logging.getLogger(__name__)

DISABLED = '-'

Weekday = Literal['mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun']


class DailyTime(NamedTuple):
    hour: int
    minute: int

    def __str__(self) -> str:
        return f'{self.hour:02d}:{self.minute:02d}'


class JobScheduler(Protocol):
    def add_daily_job(
        self,
        job_id: str,
        job: Callable[[], object],
        hour: int,
        minute: int,
        timezone: str,
    ) -> None: ...

    def add_weekly_job(
        self,
        job_id: str,
        job: Callable[[], object],
        weekday: Weekday,
        hour: int,
        minute: int,
        timezone: str,
    ) -> None: ...


def _parse_time(segment: str) -> DailyTime:
    hour_str, sep, minute_str = segment.partition(':')
    if not sep:
        raise ValueError(f"Schedule entry {segment!r} is not in hh:mm format")
    try:
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise ValueError(f"Schedule entry {segment!r} is not in hh:mm format") from None

    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Schedule entry {segment!r} is out of range")
    return DailyTime(hour, minute)


def parse_schedule(value: str | None) -> list[DailyTime]:
    '''
    Parse a schedule setting such as "08:00;17:30;".

    Parameters
    ----------
    value : str | None
        Semicolon separated hh:mm entries. Blank entries and a trailing
        semicolon are ignored, "-" (or no value) disables the job.

    Returns
    -------
    list[DailyTime]

    Raises
    ------
    ValueError
        If an entry is malformed or out of range.
    '''
    if value is None or value.strip() == DISABLED:
        return []

    return [
        _parse_time(segment.strip())
        for segment in value.split(';')
        if segment.strip()
    ]


def _job_name(job: Callable[[], object]) -> str:
    return getattr(job, '__name__', type(job).__name__)


def _lookup(settings: Mapping[str, str], key: str) -> list[DailyTime]:
    times = parse_schedule(settings.get(key))
    if not times:
        logger.info(f'Schedule {key!r} is disabled, nothing scheduled')
    return times


def schedule_daily_job(
    scheduler: JobScheduler,
    settings: Mapping[str, str],
    key: str,
    job: Callable[[], object],
    timezone: str = 'America/New_York',
) -> list[str]:
    '''
    Register `job` once per time listed under `settings[key]`.

    Returns
    -------
    list[str]
        The ids of the registered jobs, e.g. "sync_items0830".
    '''
    job_ids = []
    for at in _lookup(settings, key):
        job_id = f'{_job_name(job)}{at.hour:02d}{at.minute:02d}'
        scheduler.add_daily_job(job_id, job, at.hour, at.minute, timezone)
        logger.debug(f'Scheduled {job_id} daily at {at} ({timezone})')
        job_ids.append(job_id)
    return job_ids


def schedule_weekly_job(
    scheduler: JobScheduler,
    settings: Mapping[str, str],
    key: str,
    job: Callable[[], object],
    timezone: str = 'America/New_York',
    weekday: Weekday = 'mon',
) -> list[str]:
    job_ids = []
    for at in _lookup(settings, key):
        job_id = f'{_job_name(job)}{at.hour:02d}{at.minute:02d}'
        scheduler.add_weekly_job(job_id, job, weekday, at.hour, at.minute, timezone)
        logger.debug(f'Scheduled {job_id} every {weekday} at {at} ({timezone})')
        job_ids.append(job_id)
    return job_ids
