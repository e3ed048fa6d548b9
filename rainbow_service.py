# ABOUTME: Composes gateway, solar calculator and evaluator into rainbow checks
# ABOUTME: Point-in-time checks, per-sighting weather timelines and monitoring-point scans

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from cache_store import CacheStore
from errors import InternalError, MissingLocationError, MissingTimestampError, RainbowEngineError
from favorability import FavorabilityEvaluator
from models import (
    Location,
    RadarFrame,
    RainbowAssessment,
    SightingWeather,
    SunPosition,
    TimelinePoint,
    WatchAlert,
    WeatherSnapshot,
    ensure_utc,
)
from observation_gateway import ObservationGateway
from solar_position import SolarPositionCalculator
from temporal_sampler import TemporalSampler


SIGHTING_RANGE_HOURS = 3
SIGHTING_INTERVAL_MINUTES = 30
TIMELINE_WORKERS = 13


class RainbowService:
    """Point-in-time rainbow check: weather + sun position -> assessment"""

    def __init__(
        self,
        gateway: ObservationGateway,
        calculator: SolarPositionCalculator | None = None,
        evaluator: FavorabilityEvaluator | None = None,
    ) -> None:
        self.gateway = gateway
        self.calculator = calculator or SolarPositionCalculator()
        self.evaluator = evaluator or FavorabilityEvaluator()

    def sun_position(self, location: Location, instant: datetime | None = None) -> SunPosition:
        return self.calculator.compute(location, instant or datetime.now(timezone.utc))

    def check_conditions(
        self,
        location: Location,
        instant: datetime | None = None,
        snapshot: WeatherSnapshot | None = None,
    ) -> RainbowAssessment:
        """Assess a location; fetches current weather unless a snapshot is supplied

        Gateway errors propagate unchanged. Anything else raised while
        evaluating is a defect and surfaces as InternalError.
        """
        when = ensure_utc(instant) if instant else datetime.now(timezone.utc)
        if snapshot is None:
            snapshot = self.gateway.current_weather(location)

        try:
            sun = self.calculator.compute(location, when)
            return self.evaluator.evaluate(snapshot, sun)
        except Exception as e:
            print(f'❌ Rainbow evaluation defect for {location}: {e!r}')
            msg = 'Failed to check rainbow conditions'
            raise InternalError(msg) from e


class PhotoWeatherOrchestrator:
    """Conditions around a sighting: weather timeline, radar frame and assessment"""

    def __init__(
        self,
        gateway: ObservationGateway,
        calculator: SolarPositionCalculator | None = None,
        evaluator: FavorabilityEvaluator | None = None,
        sampler: TemporalSampler | None = None,
        max_workers: int = TIMELINE_WORKERS,
    ) -> None:
        self.gateway = gateway
        self.calculator = calculator or SolarPositionCalculator()
        self.evaluator = evaluator or FavorabilityEvaluator()
        self.sampler = sampler or TemporalSampler()
        self.max_workers = max_workers

    def assess_for_sighting(
        self, location: Location | None, captured_at: datetime | None
    ) -> SightingWeather:
        if location is None:
            msg = 'Sighting has no location'
            raise MissingLocationError(msg)
        if captured_at is None:
            msg = 'Sighting has no captured_at'
            raise MissingTimestampError(msg)
        captured_at = ensure_utc(captured_at)

        if self.gateway.weather_configured:
            timeline = self.weather_timeline(location, captured_at)
        else:
            print('⚠️  Weather provider not configured - skipping weather timeline')
            timeline = []

        radar = self._radar_at(location, captured_at)
        assessment = self._assess(location, captured_at, timeline)

        return SightingWeather(
            weather_timeline=timeline, radar=radar, rainbow_assessment=assessment
        )

    def weather_timeline(
        self,
        location: Location,
        center: datetime,
        range_hours: float = SIGHTING_RANGE_HOURS,
        interval_minutes: float = SIGHTING_INTERVAL_MINUTES,
    ) -> list[TimelinePoint]:
        """Historical weather around ``center``; failed samples are dropped"""
        instants = self.sampler.generate(center, range_hours, interval_minutes)
        if not instants:
            return []

        workers = max(1, min(self.max_workers, len(instants)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(
                pool.map(lambda ts: self._sample(location, ts), instants)
            )

        timeline = [point for point in results if point is not None]
        print(
            f'🌈 Weather timeline: {len(timeline)}/{len(instants)} samples '
            f'for {location.latitude:.3f},{location.longitude:.3f}'
        )
        return timeline

    def _sample(self, location: Location, instant: datetime) -> TimelinePoint | None:
        try:
            snapshot = self.gateway.historical_weather(location, instant)
        except RainbowEngineError as e:
            print(f'⚠️  Failed to fetch weather for {instant.isoformat()}: {e.message}')
            return None
        except Exception as e:
            print(f'❌ Weather sample defect for {instant.isoformat()}: {e!r}')
            return None
        return TimelinePoint(
            requested_time=instant,
            weather=snapshot,
            sun_position=self.calculator.compute(location, instant),
        )

    def _radar_at(self, location: Location, captured_at: datetime) -> RadarFrame | None:
        try:
            return self.gateway.radar(location, captured_at)
        except RainbowEngineError as e:
            print(f'⚠️  Radar unavailable for sighting: {e.message}')
            return None

    def _assess(
        self, location: Location, captured_at: datetime, timeline: list[TimelinePoint]
    ) -> RainbowAssessment:
        if not self.gateway.weather_configured:
            return self.evaluator.unavailable(
                'unconfigured', 'Weather data unavailable - provider not configured'
            )
        nearest = nearest_snapshot([point.weather for point in timeline], captured_at)
        if nearest is None:
            return self.evaluator.unavailable('no_data', 'No weather data available')

        try:
            sun = self.calculator.compute(location, captured_at)
            return self.evaluator.evaluate(nearest, sun)
        except Exception as e:
            print(f'❌ Rainbow evaluation defect for sighting at {location}: {e!r}')
            msg = 'Failed to check rainbow conditions'
            raise InternalError(msg) from e


def nearest_snapshot(
    snapshots: list[WeatherSnapshot], target: datetime
) -> WeatherSnapshot | None:
    """Snapshot closest to ``target``; on a tie the earliest wins"""
    if not snapshots:
        return None
    target = ensure_utc(target)
    return min(
        snapshots,
        key=lambda s: (abs((s.timestamp - target).total_seconds()), s.timestamp),
    )


# Monitoring points around Shiojiri
MONITORING_LOCATIONS: list[dict[str, Any]] = [
    {'id': 'daimon', 'name': 'Daimon', 'lat': 36.115, 'lng': 137.954},
    {'id': 'shiojiri_central', 'name': 'Shiojiri Central', 'lat': 36.116, 'lng': 137.949},
    {'id': 'hirooka', 'name': 'Hirooka', 'lat': 36.135, 'lng': 137.975},
    {'id': 'katasegawa', 'name': 'Katasegawa', 'lat': 36.080, 'lng': 137.920},
    {'id': 'narai', 'name': 'Narai', 'lat': 35.972, 'lng': 137.809},
]

ALERT_THROTTLE_SECONDS = 2 * 60 * 60
ALERT_CACHE_PREFIX = 'rainbow_alert:location'
DEFAULT_ESTIMATED_DURATION = 15  # minutes
MIN_ESTIMATED_DURATION = 10
MAX_ESTIMATED_DURATION = 45


class RainbowWatch:
    """Scans monitoring points and reports the ones worth an alert

    A point that produced an alert is throttled for two hours through a marker
    in the shared cache, so several workers scanning in parallel agree.
    """

    def __init__(self, service: RainbowService, cache: CacheStore) -> None:
        self.service = service
        self.cache = cache

    def scan(
        self,
        locations: list[dict[str, Any]] | None = None,
        now: datetime | None = None,
    ) -> list[WatchAlert]:
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        alerts = []

        for point in locations if locations is not None else MONITORING_LOCATIONS:
            if self.recently_alerted(point['id']):
                continue
            try:
                location = Location(point['lat'], point['lng'])
                assessment = self.service.check_conditions(location, now)
            except RainbowEngineError as e:
                print(f'❌ Rainbow watch failed for {point["id"]}: {e.message}')
                continue

            if not assessment.is_favorable:
                continue

            alerts.append(
                WatchAlert(
                    location_id=point['id'],
                    name=point.get('name', point['id']),
                    location=location,
                    score=assessment.score,
                    direction=assessment.rainbow_direction,
                    estimated_duration_minutes=self.estimate_duration(assessment),
                    summary=self.weather_summary(assessment),
                    assessment=assessment,
                )
            )
            self.mark_alerted(point['id'], now)

        print(f'🌈 Rainbow watch: {len(alerts)} favorable location(s)')
        return alerts

    def recently_alerted(self, location_id: str) -> bool:
        return self.cache.read(f'{ALERT_CACHE_PREFIX}:{location_id}') is not None

    def mark_alerted(self, location_id: str, when: datetime) -> None:
        self.cache.write(
            f'{ALERT_CACHE_PREFIX}:{location_id}',
            int(when.timestamp()),
            ALERT_THROTTLE_SECONDS,
        )

    def estimate_duration(self, assessment: RainbowAssessment) -> int:
        """Rough viewing window in minutes"""
        duration = DEFAULT_ESTIMATED_DURATION

        if assessment.score >= 80:  # noqa: PLR2004
            duration += 10
        elif assessment.score >= 70:  # noqa: PLR2004
            duration += 5

        precipitation = assessment.conditions.get('precipitation')
        if precipitation is not None and precipitation.favorable:
            duration += 5

        # Lower sun, longer potential viewing
        altitude = assessment.sun_altitude if assessment.sun_altitude is not None else 20
        if altitude < 20:  # noqa: PLR2004
            duration += 5

        return max(MIN_ESTIMATED_DURATION, min(MAX_ESTIMATED_DURATION, duration))

    def weather_summary(self, assessment: RainbowAssessment) -> str:
        """Short human summary of the conditions behind an alert"""
        parts = []
        conditions = assessment.conditions

        humidity = conditions['humidity'].value if 'humidity' in conditions else None
        if humidity is not None:
            parts.append(f'humidity {humidity:g}%')

        cloud_cover = (
            conditions['cloud_cover'].value if 'cloud_cover' in conditions else None
        )
        if cloud_cover is not None:
            if cloud_cover <= 25:  # noqa: PLR2004
                parts.append('clear')
            elif cloud_cover <= 50:  # noqa: PLR2004
                parts.append('mostly clear')
            elif cloud_cover <= 75:  # noqa: PLR2004
                parts.append('partly cloudy')
            else:
                parts.append('cloudy')

        precipitation = conditions.get('precipitation')
        if precipitation is not None and precipitation.favorable:
            parts.append('after rain')

        return ', '.join(parts)
