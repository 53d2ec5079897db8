"""Weather aggregate: per-location feed state and the staleness-driven refresh."""

import logging
from collections import deque
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from bomwatch.config.schema import WeatherOptions
from bomwatch.ingest.protocols import WeatherFetcher
from bomwatch.ingest.staleness import (
    Feed,
    due_after_issue,
    due_at_next_issue,
    earliest,
    format_duration,
    is_due,
    overdue_due_time,
)
from bomwatch.models.common import Geohash, utc_now
from bomwatch.models.forecast import DailyForecast, HourlyForecast
from bomwatch.models.observation import Observation
from bomwatch.models.warning import WeatherWarning

logger = logging.getLogger(__name__)

# Due time of a feed that has never been checked
NEVER_CHECKED = datetime.min.replace(tzinfo=UTC)


class Weather(BaseModel):
    """Observation history, forecasts and warnings for one geohash.

    Mutated only through update_if_due and the update_* methods. Each feed has
    its own due time; a feed is fetched only once `now` is strictly past it.
    """

    geohash: Geohash
    # Most recent first; the front is the current observation
    observations: deque[Observation] = Field(default_factory=deque)
    hourly_forecast: HourlyForecast | None = None
    daily_forecast: DailyForecast | None = None
    warnings: list[WeatherWarning] = []
    next_observation_due: datetime = NEVER_CHECKED
    next_hourly_due: datetime = NEVER_CHECKED
    next_daily_due: datetime = NEVER_CHECKED
    next_warning_due: datetime = NEVER_CHECKED
    opts: WeatherOptions = WeatherOptions()

    @classmethod
    def create(
        cls,
        geohash: Geohash,
        fetcher: WeatherFetcher,
        opts: WeatherOptions | None = None,
        now: datetime | None = None,
    ) -> "Weather":
        """Build an aggregate with an initial fetch of every feed."""
        weather = cls(geohash=geohash, opts=opts or WeatherOptions())
        weather.update_if_due(fetcher, now)
        return weather

    @property
    def observation(self) -> Observation | None:
        return self.observations[0] if self.observations else None

    @property
    def next_check(self) -> datetime:
        due_times = [self.next_hourly_due, self.next_daily_due, self.next_warning_due]
        if self.opts.check_observations:
            due_times.append(self.next_observation_due)
        return earliest(*due_times)

    def update_if_due(
        self, fetcher: WeatherFetcher, now: datetime | None = None
    ) -> tuple[bool, datetime]:
        """Fetch the feeds that are due and reconcile them.

        Returns whether anything changed and when the next feed falls due.
        Fetch errors propagate; the failing feed keeps its state and due time,
        feeds reconciled before it in the same call keep their updates.
        """
        now = now or utc_now()
        changed = False

        if self.opts.check_observations and is_due(self.next_observation_due, now):
            changed |= self.update_observation(fetcher.get_observation(self.geohash), now)

        if is_due(self.next_hourly_due, now):
            changed |= self.update_hourly(fetcher.get_hourly(self.geohash), now)

        if is_due(self.next_daily_due, now):
            changed |= self.update_daily(fetcher.get_daily(self.geohash), now)

        if is_due(self.next_warning_due, now):
            changed |= self.update_warnings(fetcher.get_warnings(self.geohash), now)

        return changed, self.next_check

    def update_observation(self, observation: Observation | None, now: datetime) -> bool:
        opts = self.opts
        if observation is None:
            self.next_observation_due = overdue_due_time(now, opts.observation_missing_delay)
            self._log_due(Feed.OBSERVATION, "missing", now)
            return False

        current = self.observation
        if current is not None and observation.issue_time == current.issue_time:
            self.next_observation_due = overdue_due_time(now, opts.observation_overdue_delay)
            self._log_due(Feed.OBSERVATION, "overdue", now)
            return False

        self.observations.appendleft(observation)
        while len(self.observations) > opts.past_observation_amount:
            self.observations.pop()
        self.next_observation_due = due_after_issue(
            observation.issue_time,
            opts.observation_update_frequency,
            opts.update_delay,
            now,
            opts.observation_overdue_delay,
        )
        self._log_due(Feed.OBSERVATION, "new", now)
        return True

    def update_hourly(self, hourly: HourlyForecast, now: datetime) -> bool:
        opts = self.opts
        last = self.hourly_forecast
        if last is not None and hourly.issue_time == last.issue_time:
            self.next_hourly_due = overdue_due_time(now, opts.hourly_overdue_delay)
            self._log_due(Feed.HOURLY, "overdue", now)
            return False

        self.hourly_forecast = hourly
        self.next_hourly_due = due_after_issue(
            hourly.issue_time,
            opts.hourly_update_frequency,
            opts.update_delay,
            now,
            opts.hourly_overdue_delay,
        )
        self._log_due(Feed.HOURLY, "new", now)
        return True

    def update_daily(self, daily: DailyForecast, now: datetime) -> bool:
        opts = self.opts
        last = self.daily_forecast
        if last is not None and daily.issue_time == last.issue_time:
            self.next_daily_due = overdue_due_time(now, opts.daily_overdue_delay)
            self._log_due(Feed.DAILY, "overdue", now)
            return False

        self.daily_forecast = daily
        if opts.use_daily_next_issue_time and daily.next_issue_time is not None:
            self.next_daily_due = due_at_next_issue(
                daily.next_issue_time, opts.update_delay, now, opts.daily_overdue_delay
            )
        else:
            self.next_daily_due = due_after_issue(
                daily.issue_time,
                opts.daily_update_frequency,
                opts.update_delay,
                now,
                opts.daily_overdue_delay,
            )
        self._log_due(Feed.DAILY, "new", now)
        return True

    def update_warnings(self, warnings: list[WeatherWarning], now: datetime) -> bool:
        # No issue time for warnings, any difference in the list counts as new
        changed = warnings != self.warnings
        if changed:
            self.warnings = warnings
        self.next_warning_due = now + self.opts.warning_update_frequency
        self._log_due(Feed.WARNINGS, "new" if changed else "unchanged", now)
        return changed

    def _log_due(self, feed: Feed, outcome: str, now: datetime) -> None:
        due = {
            Feed.OBSERVATION: self.next_observation_due,
            Feed.HOURLY: self.next_hourly_due,
            Feed.DAILY: self.next_daily_due,
            Feed.WARNINGS: self.next_warning_due,
        }[feed]
        logger.debug(
            "%s %s %s. Next check in %s",
            self.geohash, feed.value, outcome, format_duration(due - now),
        )
