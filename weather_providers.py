# ABOUTME: Provider classes for OpenWeatherMap observations and RainViewer radar tiles
# ABOUTME: Thin typed clients; every failure surfaces as a RainbowEngineError subclass

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import requests

from errors import (
    ConfigurationMissingError,
    ProviderTimeoutError,
    RateLimitedError,
    UpstreamError,
)
from models import Location, RadarFrame, WeatherSnapshot, ensure_utc, from_epoch


DEFAULT_TIMEOUT = 10

# OpenWeatherMap condition ids (https://openweathermap.org/weather-conditions)
WEATHER_CODE_CATEGORIES = [
    (200, 232, 'thunderstorm'),
    (300, 321, 'drizzle'),
    (500, 531, 'rain'),
    (600, 622, 'snow'),
    (701, 781, 'atmosphere'),
    (800, 800, 'clear'),
    (801, 804, 'clouds'),
]
PRECIPITATION_CATEGORIES = {'thunderstorm', 'drizzle', 'rain', 'snow'}


def categorize_weather_code(code: int | None) -> str | None:
    """Map an OpenWeatherMap condition id to its group name"""
    if code is None:
        return None
    for low, high, category in WEATHER_CODE_CATEGORIES:
        if low <= code <= high:
            return category
    return 'unknown'


class Provider(ABC):
    """Base class for upstream observation providers"""

    def __init__(self, name: str, timeout: float = DEFAULT_TIMEOUT):
        self.name = name
        self.timeout = timeout

    def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict:
        """GET a JSON document, mapping transport and status failures to engine errors"""
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            print(f'⏱️  {self.name} request timed out: {str(e)}')
            msg = f'{self.name} request timed out. Please try again.'
            raise ProviderTimeoutError(msg) from e
        except requests.exceptions.RequestException as e:
            print(f'❌ {self.name} request failed: {str(e)}')
            msg = f'{self.name} request failed: {str(e)}'
            raise UpstreamError(msg) from e

        status = response.status_code
        if status == 200:  # noqa: PLR2004
            try:
                return response.json()  # type: ignore[no-any-return]
            except ValueError as e:
                msg = f'{self.name} returned an invalid JSON body'
                raise UpstreamError(msg) from e

        print(f'❌ {self.name} API returned {status}')
        if status == 401:  # noqa: PLR2004
            msg = f'{self.name}: invalid API key'
            raise UpstreamError(msg)
        if status == 429:  # noqa: PLR2004
            msg = f'{self.name} rate limit exceeded. Please try again later.'
            raise RateLimitedError(msg)
        if 400 <= status < 500:  # noqa: PLR2004
            msg = f'{self.name} client error: {status}'
            raise UpstreamError(msg)
        if 500 <= status < 600:  # noqa: PLR2004
            msg = f'{self.name} server error: {status}'
            raise UpstreamError(msg)
        msg = f'{self.name} unexpected response: {status}'
        raise UpstreamError(msg)

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about this provider"""
        return {
            'name': self.name,
            'timeout': self.timeout,
            'description': self.__doc__ or f'{self.name} provider',
        }


class WeatherProvider(Provider):
    """Abstract base class for weather observation providers"""

    is_configured = True

    @abstractmethod
    def current_weather(self, lat: float, lon: float) -> WeatherSnapshot:
        """Latest observation for the coordinates"""

    @abstractmethod
    def historical_weather(
        self, lat: float, lon: float, timestamp: datetime
    ) -> WeatherSnapshot:
        """Observation for the coordinates at ``timestamp``"""

    def get_provider_info(self) -> dict[str, Any]:
        return {**super().get_provider_info(), 'configured': self.is_configured}


class UnconfiguredWeatherProvider(WeatherProvider):
    """Stand-in used when no weather API key is set; every call is refused"""

    is_configured = False

    def __init__(self) -> None:
        super().__init__('UnconfiguredWeather')

    def _refuse(self) -> WeatherSnapshot:
        msg = (
            'Weather API is not configured. '
            'Please set OPENWEATHERMAP_API_KEY environment variable.'
        )
        raise ConfigurationMissingError(msg)

    def current_weather(self, lat: float, lon: float) -> WeatherSnapshot:  # noqa: ARG002
        return self._refuse()

    def historical_weather(
        self,
        lat: float,  # noqa: ARG002
        lon: float,  # noqa: ARG002
        timestamp: datetime,  # noqa: ARG002
    ) -> WeatherSnapshot:
        return self._refuse()


class OpenWeatherMapProvider(WeatherProvider):
    """OpenWeatherMap One Call 3.0 provider - current and historical observations"""

    BASE_URL = 'https://api.openweathermap.org/data/3.0'
    ONECALL_ENDPOINT = '/onecall'
    TIMEMACHINE_ENDPOINT = '/onecall/timemachine'
    UNITS = 'metric'  # Celsius, m/s, hPa

    def __init__(self, api_key: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__('OpenWeatherMap', timeout)
        if not api_key:
            msg = 'OpenWeatherMap API key is required'
            raise ConfigurationMissingError(msg)
        self.api_key = api_key
        self.base_url = self.BASE_URL

    def fetch_weather_data(
        self, lat: float, lon: float, timestamp: datetime | None = None
    ) -> dict:
        """Fetch the raw One Call payload; timemachine when a timestamp is given"""
        params: dict[str, Any] = {
            'lat': lat,
            'lon': lon,
            'appid': self.api_key,
            'units': self.UNITS,
        }
        if timestamp is None:
            endpoint = self.ONECALL_ENDPOINT
            params['exclude'] = 'minutely,hourly,daily,alerts'
        else:
            endpoint = self.TIMEMACHINE_ENDPOINT
            params['dt'] = int(ensure_utc(timestamp).timestamp())

        print(f'🌤️  OpenWeatherMap request: {endpoint} ({lat}, {lon})')
        return self._get_json(f'{self.base_url}{endpoint}', params)

    def process_weather_data(
        self, raw_data: dict, requested_timestamp: datetime | None = None
    ) -> WeatherSnapshot | None:
        """Normalise a One Call (``current``) or timemachine (``data[0]``) payload"""
        if requested_timestamp is None:
            observation = raw_data.get('current')
        else:
            observation = (raw_data.get('data') or [None])[0]

        if not observation or observation.get('dt') is None:
            return None

        weather = (observation.get('weather') or [{}])[0]
        weather_code = weather.get('id')
        rain_1h = (observation.get('rain') or {}).get('1h')
        snow_1h = (observation.get('snow') or {}).get('1h')

        return WeatherSnapshot(
            timestamp=from_epoch(observation['dt']),
            requested_timestamp=(
                ensure_utc(requested_timestamp) if requested_timestamp else None
            ),
            temperature=observation.get('temp'),
            feels_like=observation.get('feels_like'),
            humidity=observation.get('humidity'),
            pressure=observation.get('pressure'),
            dew_point=observation.get('dew_point'),
            uvi=observation.get('uvi'),
            wind_speed=observation.get('wind_speed'),
            wind_direction=observation.get('wind_deg'),
            wind_gust=observation.get('wind_gust'),
            cloud_cover=observation.get('clouds'),
            visibility=observation.get('visibility'),
            weather_code=weather_code,
            weather_main=weather.get('main'),
            weather_description=weather.get('description'),
            weather_icon=weather.get('icon'),
            rain_1h=rain_1h,
            snow_1h=snow_1h,
            precipitation_type=self._determine_precipitation_type(
                rain_1h, snow_1h, weather_code
            ),
            sunrise=from_epoch(observation['sunrise']) if observation.get('sunrise') else None,
            sunset=from_epoch(observation['sunset']) if observation.get('sunset') else None,
        )

    def _determine_precipitation_type(
        self, rain: float | None, snow: float | None, weather_code: int | None
    ) -> str | None:
        """Determine precipitation type from measured amounts, then the condition id"""
        if snow and snow > 0:
            return 'snow'
        if rain and rain > 0:
            return 'rain'
        category = categorize_weather_code(weather_code)
        return category if category in PRECIPITATION_CATEGORIES else None

    def current_weather(self, lat: float, lon: float) -> WeatherSnapshot:
        snapshot = self.process_weather_data(self.fetch_weather_data(lat, lon))
        if snapshot is None:
            msg = 'OpenWeatherMap returned no current observation'
            raise UpstreamError(msg)
        return snapshot

    def historical_weather(
        self, lat: float, lon: float, timestamp: datetime
    ) -> WeatherSnapshot:
        raw_data = self.fetch_weather_data(lat, lon, timestamp)
        snapshot = self.process_weather_data(raw_data, timestamp)
        if snapshot is None:
            msg = f'OpenWeatherMap returned no observation for {timestamp.isoformat()}'
            raise UpstreamError(msg)
        return snapshot


def create_weather_provider(
    api_key: str | None, timeout: float = DEFAULT_TIMEOUT
) -> WeatherProvider:
    """Pick the weather provider once, from whether credentials exist"""
    if api_key and api_key != 'YOUR_API_KEY_HERE':
        print('🔑 OpenWeatherMap API key found - weather observations available')
        return OpenWeatherMapProvider(api_key, timeout)
    print('🔑 No OpenWeatherMap API key - weather observations unavailable')
    return UnconfiguredWeatherProvider()


class RainViewerRadarProvider(Provider):
    """Free radar provider using the RainViewer API for precipitation tiles"""

    BASE_URL = 'https://api.rainviewer.com'
    MAPS_ENDPOINT = '/public/weather-maps.json'
    TILE_URL = (
        'https://tilecache.rainviewer.com/v2/radar/'
        '{timestamp}/{size}/{z}/{x}/{y}/{color}/{smooth}_{snow}.png'
    )

    DEFAULT_ZOOM = 10
    TILE_SIZE = 256
    COLOR_SCHEME = 1
    SMOOTH = 1
    SNOW = 1

    # Reflectivity bands (dBZ) using the Z = 200 * R^1.6 approximation
    INTENSITY_LEVELS = [
        (15, {'level': 'none', 'mm_h': 0.0, 'description': 'No precipitation'}),
        (25, {'level': 'light', 'mm_h': 0.5, 'description': 'Light precipitation'}),
        (35, {'level': 'moderate', 'mm_h': 2.5, 'description': 'Moderate precipitation'}),
        (45, {'level': 'heavy', 'mm_h': 10.0, 'description': 'Heavy precipitation'}),
        (55, {'level': 'very_heavy', 'mm_h': 50.0, 'description': 'Very heavy precipitation'}),
        (math.inf, {'level': 'extreme', 'mm_h': 100.0, 'description': 'Extreme precipitation'}),
    ]

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__('RainViewer', timeout)
        self.base_url = self.BASE_URL

    def available_timestamps(self) -> dict[str, Any]:
        """Fetch the list of past and nowcast radar frames"""
        data = self._get_json(f'{self.base_url}{self.MAPS_ENDPOINT}')
        radar = data.get('radar') or {}
        past_frames = radar.get('past') or []
        nowcast_frames = radar.get('nowcast') or []

        first_path = past_frames[0].get('path', '') if past_frames else ''
        return {
            'generated': data.get('generated'),
            'host': data.get('host'),
            'past': [frame['time'] for frame in past_frames if 'time' in frame],
            'nowcast': [frame['time'] for frame in nowcast_frames if 'time' in frame],
            'coverage': 'global' if 'radar' in first_path else 'unknown',
        }

    def radar(
        self,
        lat: float,
        lon: float,
        timestamp: datetime | None = None,
        zoom: int = DEFAULT_ZOOM,
    ) -> RadarFrame | None:
        """Radar frame closest to ``timestamp`` (latest when None)"""
        frames = self.available_timestamps()
        past = frames['past']
        if not past:
            print('❌ No radar data available from RainViewer')
            return None

        if timestamp is None:
            radar_timestamp = past[-1]
        else:
            target = ensure_utc(timestamp).timestamp()
            radar_timestamp = min(past, key=lambda ts: abs(ts - target))

        tile_x, tile_y = self._lat_lon_to_tile(lat, lon, zoom)
        print(f'🌧️  Radar: frame {radar_timestamp} at zoom {zoom} ({tile_x}, {tile_y})')

        return RadarFrame(
            timestamp=from_epoch(radar_timestamp),
            location=Location(lat, lon),
            zoom=zoom,
            tile_url=self._tile_url(radar_timestamp, tile_x, tile_y, zoom),
            tile_coords={'x': tile_x, 'y': tile_y, 'z': zoom},
            coverage=frames['coverage'],
            nowcast_available=bool(frames['nowcast']),
            nowcast_timestamps=tuple(from_epoch(ts) for ts in frames['nowcast']),
        )

    def precipitation_timeline(
        self, lat: float, lon: float, count: int = 7
    ) -> list[dict[str, Any]]:
        """Most recent ``count`` past frames (7 frames = the last hour)"""
        past = self.available_timestamps()['past'][-count:] if count > 0 else []
        return [self._frame(ts, lat, lon) for ts in past]

    def nowcast(self, lat: float, lon: float) -> list[dict[str, Any]]:
        """Forecast frames, when RainViewer publishes any"""
        return [
            {**self._frame(ts, lat, lon), 'is_forecast': True}
            for ts in self.available_timestamps()['nowcast']
        ]

    @classmethod
    def classify_intensity(cls, dbz: float) -> dict[str, Any]:
        """Map radar reflectivity (dBZ) to a precipitation intensity band"""
        for upper, info in cls.INTENSITY_LEVELS:
            if dbz <= upper:
                return dict(info)
        return dict(cls.INTENSITY_LEVELS[0][1])

    def _frame(self, timestamp: int, lat: float, lon: float) -> dict[str, Any]:
        tile_x, tile_y = self._lat_lon_to_tile(lat, lon, self.DEFAULT_ZOOM)
        return {
            'timestamp': from_epoch(timestamp).isoformat(),
            'tile_url': self._tile_url(timestamp, tile_x, tile_y, self.DEFAULT_ZOOM),
            'tile_coords': {'x': tile_x, 'y': tile_y, 'z': self.DEFAULT_ZOOM},
        }

    def _tile_url(self, timestamp: int, tile_x: int, tile_y: int, zoom: int) -> str:
        return self.TILE_URL.format(
            timestamp=timestamp,
            size=self.TILE_SIZE,
            z=zoom,
            x=tile_x,
            y=tile_y,
            color=self.COLOR_SCHEME,
            smooth=self.SMOOTH,
            snow=self.SNOW,
        )

    def _lat_lon_to_tile(self, lat: float, lon: float, zoom: int) -> tuple[int, int]:
        """Convert latitude/longitude to slippy-map tile coordinates at a zoom level"""
        lat_rad = math.radians(lat)
        n = 2.0**zoom
        tile_x = math.floor((lon + 180.0) / 360.0 * n)
        tile_y = math.floor((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
        return tile_x, tile_y
