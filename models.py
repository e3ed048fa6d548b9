# ABOUTME: Value types shared by the solar, weather, radar and favorability components
# ABOUTME: Every type serialises to the camelCase JSON shape the app's map/feed views consume

import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from errors import InvalidLocationError


MIN_LAT, MAX_LAT = -90.0, 90.0
MIN_LON, MAX_LON = -180.0, 180.0


def ensure_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime; naive input is taken to already be UTC"""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_instant(value: str | int | float | datetime | None) -> datetime | None:
    """Parse an ISO-8601 string or unix seconds into an aware UTC datetime"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return from_epoch(value)
    text = value.strip()
    if text.lstrip('-').replace('.', '', 1).isdigit():
        return from_epoch(float(text))
    return ensure_utc(datetime.fromisoformat(text.replace('Z', '+00:00')))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat, lon = self.latitude, self.longitude
        if not (isinstance(lat, (int, float)) and isinstance(lon, (int, float))):
            msg = f'Coordinates must be numeric, got ({lat!r}, {lon!r})'
            raise InvalidLocationError(msg)
        if not (math.isfinite(lat) and math.isfinite(lon)):
            msg = f'Coordinates must be finite, got ({lat}, {lon})'
            raise InvalidLocationError(msg)
        if not MIN_LAT <= lat <= MAX_LAT:
            msg = f'Latitude must be between -90 and 90, got {lat}'
            raise InvalidLocationError(msg)
        if not MIN_LON <= lon <= MAX_LON:
            msg = f'Longitude must be between -180 and 180, got {lon}'
            raise InvalidLocationError(msg)

    def to_dict(self) -> dict[str, float]:
        return {'lat': self.latitude, 'lng': self.longitude}


@dataclass(frozen=True)
class WeatherSnapshot:
    """One observation from the weather provider; None means unknown, never zero"""

    timestamp: datetime
    requested_timestamp: datetime | None = None
    temperature: float | None = None
    feels_like: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    dew_point: float | None = None
    uvi: float | None = None
    wind_speed: float | None = None
    wind_direction: float | None = None
    wind_gust: float | None = None
    cloud_cover: float | None = None
    visibility: float | None = None
    weather_code: int | None = None
    weather_main: str | None = None
    weather_description: str | None = None
    weather_icon: str | None = None
    rain_1h: float | None = None
    snow_1h: float | None = None
    precipitation_type: str | None = None
    sunrise: datetime | None = None
    sunset: datetime | None = None

    _DATETIME_FIELDS = ('timestamp', 'requested_timestamp', 'sunrise', 'sunset')

    def to_cache(self) -> dict[str, Any]:
        """Plain-dict form that any cache backend (memory or JSON) can hold"""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = _iso(value) if f.name in self._DATETIME_FIELDS else value
        return data

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> 'WeatherSnapshot':
        values = dict(data)
        for name in cls._DATETIME_FIELDS:
            values[name] = parse_instant(values.get(name))
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            'timestamp': _iso(self.timestamp),
            'requestedTimestamp': _iso(self.requested_timestamp),
            'temperature': self.temperature,
            'feelsLike': self.feels_like,
            'humidity': self.humidity,
            'pressure': self.pressure,
            'dewPoint': self.dew_point,
            'uvi': self.uvi,
            'windSpeed': self.wind_speed,
            'windDirection': self.wind_direction,
            'windGust': self.wind_gust,
            'cloudCover': self.cloud_cover,
            'visibility': self.visibility,
            'weatherCode': self.weather_code,
            'weatherMain': self.weather_main,
            'weatherDescription': self.weather_description,
            'weatherIcon': self.weather_icon,
            'rain1h': self.rain_1h,
            'snow1h': self.snow_1h,
            'precipitationType': self.precipitation_type,
            'sunrise': _iso(self.sunrise),
            'sunset': _iso(self.sunset),
        }


@dataclass(frozen=True)
class SunPosition:
    altitude: float
    azimuth: float
    azimuth_raw: float
    is_daytime: bool
    sunrise: datetime | None = None
    sunset: datetime | None = None
    solar_noon: datetime | None = None
    golden_hour_start: datetime | None = None
    golden_hour_end: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'altitude': round(self.altitude, 2),
            'azimuth': self.azimuth,
            'azimuthRaw': round(self.azimuth_raw, 2),
            'isDaytime': self.is_daytime,
            'sunrise': _iso(self.sunrise),
            'sunset': _iso(self.sunset),
            'solarNoon': _iso(self.solar_noon),
            'goldenHourStart': _iso(self.golden_hour_start),
            'goldenHourEnd': _iso(self.golden_hour_end),
        }


@dataclass(frozen=True)
class RadarFrame:
    timestamp: datetime
    location: Location
    zoom: int
    tile_url: str
    tile_coords: dict[str, int]
    coverage: str = 'unknown'
    nowcast_available: bool = False
    nowcast_timestamps: tuple[datetime, ...] = ()

    def to_cache(self) -> dict[str, Any]:
        return {
            'timestamp': _iso(self.timestamp),
            'location': [self.location.latitude, self.location.longitude],
            'zoom': self.zoom,
            'tile_url': self.tile_url,
            'tile_coords': dict(self.tile_coords),
            'coverage': self.coverage,
            'nowcast_available': self.nowcast_available,
            'nowcast_timestamps': [_iso(ts) for ts in self.nowcast_timestamps],
        }

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> 'RadarFrame':
        lat, lon = data['location']
        return cls(
            timestamp=parse_instant(data['timestamp']),  # type: ignore[arg-type]
            location=Location(lat, lon),
            zoom=data['zoom'],
            tile_url=data['tile_url'],
            tile_coords=dict(data['tile_coords']),
            coverage=data.get('coverage', 'unknown'),
            nowcast_available=data.get('nowcast_available', False),
            nowcast_timestamps=tuple(
                parse_instant(ts) for ts in data.get('nowcast_timestamps', [])  # type: ignore[misc]
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'timestamp': _iso(self.timestamp),
            'location': self.location.to_dict(),
            'zoom': self.zoom,
            'tileUrl': self.tile_url,
            'tileCoords': dict(self.tile_coords),
            'coverage': self.coverage,
            'nowcastAvailable': self.nowcast_available,
            'nowcastTimestamps': [_iso(ts) for ts in self.nowcast_timestamps],
        }


@dataclass(frozen=True)
class ConditionVerdict:
    value: Any
    favorable: bool
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {'value': self.value, 'favorable': self.favorable, 'reason': self.reason}


@dataclass(frozen=True)
class RainbowDirection:
    azimuth: float
    cardinal: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            'azimuth': self.azimuth,
            'cardinal': self.cardinal,
            'description': self.description,
        }


@dataclass(frozen=True)
class RainbowAssessment:
    is_favorable: bool
    score: int
    conditions: dict[str, ConditionVerdict] = field(default_factory=dict)
    rainbow_direction: RainbowDirection | None = None
    sun_altitude: float | None = None
    sun_azimuth: float | None = None
    recommendations: list[str] = field(default_factory=list)
    available: bool = True
    status: str = 'ok'
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'available': self.available,
            'status': self.status,
            'message': self.message,
            'isFavorable': self.is_favorable,
            'score': self.score,
            'conditions': {
                name: verdict.to_dict() for name, verdict in self.conditions.items()
            },
            'rainbowDirection': (
                self.rainbow_direction.to_dict() if self.rainbow_direction else None
            ),
            'sunAltitude': (
                round(self.sun_altitude, 1) if self.sun_altitude is not None else None
            ),
            'sunAzimuth': self.sun_azimuth,
            'recommendations': list(self.recommendations),
        }


@dataclass(frozen=True)
class TimelinePoint:
    requested_time: datetime
    weather: WeatherSnapshot
    sun_position: SunPosition | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.weather.to_dict(),
            'requestedTime': _iso(self.requested_time),
            'sunPosition': self.sun_position.to_dict() if self.sun_position else None,
        }


@dataclass(frozen=True)
class SightingWeather:
    weather_timeline: list[TimelinePoint]
    radar: RadarFrame | None
    rainbow_assessment: RainbowAssessment

    def to_dict(self) -> dict[str, Any]:
        return {
            'weatherTimeline': [point.to_dict() for point in self.weather_timeline],
            'radar': self.radar.to_dict() if self.radar else None,
            'rainbowConditions': self.rainbow_assessment.to_dict(),
        }


@dataclass(frozen=True)
class WatchAlert:
    location_id: str
    name: str
    location: Location
    score: int
    direction: RainbowDirection | None
    estimated_duration_minutes: int
    summary: str
    assessment: RainbowAssessment

    def to_dict(self) -> dict[str, Any]:
        return {
            'locationId': self.location_id,
            'name': self.name,
            'location': self.location.to_dict(),
            'score': self.score,
            'direction': self.direction.to_dict() if self.direction else None,
            'estimatedDuration': self.estimated_duration_minutes,
            'weatherSummary': self.summary,
            'conditions': self.assessment.to_dict(),
        }
