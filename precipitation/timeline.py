"""Precipitation timeline: classified time points and the next rain start/stop transition."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from utils.logging import get_logger
from utils.time_utils import ensure_utc, minutes_between, parse_iso_timestamp
from weather.models import ForecastSample

log = get_logger("timeline")

# Empirical thresholds for "it is raining"
RAIN_AMOUNT_THRESHOLD = 0.1  # mm/h
RAIN_PROBABILITY_THRESHOLD = 50.0  # %

DEFAULT_HORIZON = timedelta(hours=2)


class PrecipitationIntensity(Enum):
    NONE = "none"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"


@dataclass(frozen=True)
class PrecipitationTimePoint:
    time: datetime
    precipitation: float  # mm/h
    probability: float  # 0-100

    @property
    def is_raining(self) -> bool:
        return self.precipitation > RAIN_AMOUNT_THRESHOLD and self.probability >= RAIN_PROBABILITY_THRESHOLD

    @property
    def intensity(self) -> PrecipitationIntensity:
        if self.precipitation <= 0.1:
            return PrecipitationIntensity.NONE
        if self.precipitation <= 0.5:
            return PrecipitationIntensity.LIGHT
        if self.precipitation <= 2.0:
            return PrecipitationIntensity.MODERATE
        return PrecipitationIntensity.HEAVY


@dataclass(frozen=True)
class PrecipitationTimeline:
    time_points: tuple[PrecipitationTimePoint, ...] = field(default_factory=tuple)
    is_raining_now: bool = False
    rain_start_time: datetime | None = None
    rain_end_time: datetime | None = None

    def minutes_until_rain_starts(self, now: datetime) -> int | None:
        if self.rain_start_time is None:
            return None
        return minutes_between(now, self.rain_start_time)

    def minutes_until_rain_stops(self, now: datetime) -> int | None:
        if self.rain_end_time is None:
            return None
        return minutes_between(now, self.rain_end_time)


def to_time_points(samples: Iterable[ForecastSample]) -> list[PrecipitationTimePoint]:
    """Map raw samples to time points.

    Unparseable times are dropped, as is any sample that does not move
    strictly forward in time. Missing precipitation counts as 0; a missing
    probability (amount-only series) counts as certain.
    """
    points: list[PrecipitationTimePoint] = []
    for sample in samples:
        time = parse_iso_timestamp(sample.time)
        if time is None:
            log.debug("timeline_sample_dropped", time=sample.time)
            continue
        if points and time <= points[-1].time:
            continue
        points.append(
            PrecipitationTimePoint(
                time=time,
                precipitation=sample.precipitation if sample.precipitation is not None else 0.0,
                probability=sample.probability if sample.probability is not None else 100.0,
            )
        )
    return points


def truncate_to_horizon(
    points: list[PrecipitationTimePoint],
    now: datetime,
    horizon: timedelta = DEFAULT_HORIZON,
) -> list[PrecipitationTimePoint]:
    """Keep the point covering `now` and everything up to `now + horizon`.

    The covering point is the last one at or before now; when the series
    starts in the future the first point is kept as-is.
    """
    start = 0
    for i, point in enumerate(points):
        if point.time <= now:
            start = i
        else:
            break
    end = now + horizon
    return [p for p in points[start:] if p.time <= end]


def build_timeline(
    samples: Iterable[ForecastSample],
    now: datetime,
    horizon: timedelta = DEFAULT_HORIZON,
) -> PrecipitationTimeline:
    """Classify a forecast series and find the next rain transition.

    Never raises: malformed samples are dropped and a series with fewer than
    two usable points produces a timeline without transitions.
    """
    now = ensure_utc(now)
    points = truncate_to_horizon(to_time_points(samples), now, horizon)

    if len(points) < 2:
        return PrecipitationTimeline(
            time_points=tuple(points),
            is_raining_now=bool(points) and points[0].is_raining,
        )

    is_raining_now = points[0].is_raining
    rain_start: datetime | None = None
    rain_end: datetime | None = None

    if not is_raining_now:
        for point in points:
            if point.time > now and point.is_raining:
                rain_start = point.time
                break
    else:
        for current, following in zip(points, points[1:]):
            if current.is_raining and not following.is_raining and following.time > now:
                rain_end = following.time
                break

    timeline = PrecipitationTimeline(
        time_points=tuple(points),
        is_raining_now=is_raining_now,
        rain_start_time=rain_start,
        rain_end_time=rain_end,
    )
    log.debug(
        "timeline_built",
        points=len(points),
        raining_now=is_raining_now,
        rain_start=rain_start.isoformat() if rain_start else None,
        rain_end=rain_end.isoformat() if rain_end else None,
    )
    return timeline
