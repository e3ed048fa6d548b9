# ABOUTME: Cached facade over the weather and radar providers
# ABOUTME: Owns cache keys, TTLs and historical timestamp rounding

import math
from datetime import datetime
from typing import Any

from cache_store import CacheStore, MemoryCacheStore
from errors import UpstreamError
from models import Location, RadarFrame, WeatherSnapshot, ensure_utc, from_epoch
from weather_providers import RainViewerRadarProvider, WeatherProvider


CURRENT_WEATHER_TTL = 15 * 60
HISTORICAL_WEATHER_TTL = 24 * 60 * 60  # Past observations never change
RADAR_TTL = 5 * 60
HISTORICAL_BUCKET_SECONDS = 30 * 60

CACHE_PREFIX_CURRENT = 'weather:current'
CACHE_PREFIX_HISTORICAL = 'weather:historical'
CACHE_PREFIX_RADAR = 'weather:radar'


def round_to_half_hour(instant: datetime) -> datetime:
    """Round to the nearest 30-minute boundary, halves rounding up"""
    seconds = ensure_utc(instant).timestamp()
    buckets = math.floor(seconds / HISTORICAL_BUCKET_SECONDS + 0.5)
    return from_epoch(buckets * HISTORICAL_BUCKET_SECONDS)


def cache_key(prefix: str, location: Location, bucket: str | int) -> str:
    return f'{prefix}:{location.latitude:.3f}:{location.longitude:.3f}:{bucket}'


class ObservationGateway:
    """Weather and radar lookups behind a write-through read cache

    Weather availability is decided once, from the provider handed in; an
    unconfigured provider refuses every weather call while radar, which comes
    from an independent keyless provider, keeps working. There are no retries:
    a cache miss costs exactly one upstream call and provider errors propagate.
    """

    def __init__(
        self,
        weather_provider: WeatherProvider,
        radar_provider: RainViewerRadarProvider,
        cache: CacheStore | None = None,
    ) -> None:
        self.weather_provider = weather_provider
        self.radar_provider = radar_provider
        self.cache = cache if cache is not None else MemoryCacheStore()
        self.weather_configured = weather_provider.is_configured

    def current_weather(self, location: Location, use_cache: bool = True) -> WeatherSnapshot:
        key = cache_key(CACHE_PREFIX_CURRENT, location, 'now')
        if use_cache:
            cached = self.cache.read(key)
            if cached is not None:
                print(f'📦 Returning cached current weather for {key}')
                return WeatherSnapshot.from_cache(cached)

        snapshot = self.weather_provider.current_weather(
            location.latitude, location.longitude
        )
        self.cache.write(key, snapshot.to_cache(), CURRENT_WEATHER_TTL)
        return snapshot

    def historical_weather(
        self, location: Location, instant: datetime, use_cache: bool = True
    ) -> WeatherSnapshot:
        rounded = round_to_half_hour(instant)
        key = cache_key(CACHE_PREFIX_HISTORICAL, location, int(rounded.timestamp()))
        if use_cache:
            cached = self.cache.read(key)
            if cached is not None:
                print(f'📦 Returning cached historical weather for {key}')
                return WeatherSnapshot.from_cache(cached)

        snapshot = self.weather_provider.historical_weather(
            location.latitude, location.longitude, rounded
        )
        self.cache.write(key, snapshot.to_cache(), HISTORICAL_WEATHER_TTL)
        return snapshot

    def radar(
        self,
        location: Location,
        instant: datetime | None = None,
        use_cache: bool = True,
    ) -> RadarFrame:
        bucket: str | int = (
            int(ensure_utc(instant).timestamp()) if instant is not None else 'latest'
        )
        key = cache_key(CACHE_PREFIX_RADAR, location, bucket)
        if use_cache:
            cached = self.cache.read(key)
            if cached is not None:
                print(f'📦 Returning cached radar frame for {key}')
                return RadarFrame.from_cache(cached)

        frame = self.radar_provider.radar(location.latitude, location.longitude, instant)
        if frame is None:
            msg = 'No radar data available'
            raise UpstreamError(msg)
        self.cache.write(key, frame.to_cache(), RADAR_TTL)
        return frame

    def radar_timeline(self, location: Location) -> dict[str, list[dict[str, Any]]]:
        """Past hour of radar frames plus any nowcast frames, uncached"""
        return {
            'past': self.radar_provider.precipitation_timeline(
                location.latitude, location.longitude, count=7
            ),
            'nowcast': self.radar_provider.nowcast(location.latitude, location.longitude),
        }

    def get_gateway_info(self) -> dict[str, Any]:
        return {
            'weather_configured': self.weather_configured,
            'weather_provider': self.weather_provider.get_provider_info(),
            'radar_provider': self.radar_provider.get_provider_info(),
            'cache': self.cache.get_store_info(),
            'ttl_seconds': {
                'current': CURRENT_WEATHER_TTL,
                'historical': HISTORICAL_WEATHER_TTL,
                'radar': RADAR_TTL,
            },
        }
