import os
import sys
from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from flask import Flask
from flask.testing import FlaskClient


# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cache_store import MemoryCacheStore
from main import app
from models import Location, RadarFrame, WeatherSnapshot
from observation_gateway import ObservationGateway
from weather_providers import RainViewerRadarProvider, WeatherProvider


SHIOJIRI_LAT = 36.115
SHIOJIRI_LON = 137.954
SIGHTING_TIME = datetime(2024, 6, 15, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced timer for TTL tests"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture  # type: ignore[misc]
def flask_app() -> Flask:
    """Create a Flask app instance for testing"""
    app.config['TESTING'] = True
    return app


@pytest.fixture  # type: ignore[misc]
def client(flask_app: Flask) -> FlaskClient:
    """Create a test client for the Flask app"""
    return flask_app.test_client()


@pytest.fixture  # type: ignore[misc]
def app_context(flask_app: Flask) -> Generator[Flask, None, None]:
    """Create an application context for testing"""
    with flask_app.app_context():
        yield flask_app


@pytest.fixture  # type: ignore[misc]
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture  # type: ignore[misc]
def memory_cache(clock: FakeClock) -> MemoryCacheStore:
    """In-process cache driven by the fake clock"""
    return MemoryCacheStore(maxsize=128, timer=clock)


@pytest.fixture  # type: ignore[misc]
def shiojiri() -> Location:
    return Location(SHIOJIRI_LAT, SHIOJIRI_LON)


@pytest.fixture  # type: ignore[misc]
def favorable_snapshot() -> WeatherSnapshot:
    """Light rain with broken cloud: every weather factor favorable"""
    return WeatherSnapshot(
        timestamp=SIGHTING_TIME,
        temperature=18.5,
        humidity=85,
        pressure=1008,
        cloud_cover=40,
        visibility=10000,
        weather_code=500,
        weather_main='Rain',
        weather_description='light rain',
        rain_1h=0.4,
        precipitation_type='rain',
    )


@pytest.fixture  # type: ignore[misc]
def unfavorable_snapshot() -> WeatherSnapshot:
    """Dry, overcast and hazy: every weather factor unfavorable"""
    return WeatherSnapshot(
        timestamp=SIGHTING_TIME,
        temperature=24.0,
        humidity=30,
        cloud_cover=95,
        visibility=500,
        weather_code=804,
        weather_main='Clouds',
        weather_description='overcast clouds',
    )


@pytest.fixture  # type: ignore[misc]
def mock_owm_current_response() -> dict[str, Any]:
    """Mock OpenWeatherMap One Call response"""
    return {
        'lat': SHIOJIRI_LAT,
        'lon': SHIOJIRI_LON,
        'timezone': 'Asia/Tokyo',
        'current': {
            'dt': 1718438400,  # 2024-06-15T08:00:00Z
            'sunrise': 1718393400,
            'sunset': 1718446200,
            'temp': 18.5,
            'feels_like': 18.2,
            'pressure': 1008,
            'humidity': 85,
            'dew_point': 15.9,
            'uvi': 0.8,
            'clouds': 40,
            'visibility': 10000,
            'wind_speed': 3.1,
            'wind_deg': 220,
            'wind_gust': 6.2,
            'weather': [
                {'id': 500, 'main': 'Rain', 'description': 'light rain', 'icon': '10d'}
            ],
            'rain': {'1h': 0.4},
        },
    }


@pytest.fixture  # type: ignore[misc]
def mock_owm_timemachine_response() -> dict[str, Any]:
    """Mock OpenWeatherMap timemachine response"""
    return {
        'lat': SHIOJIRI_LAT,
        'lon': SHIOJIRI_LON,
        'timezone': 'Asia/Tokyo',
        'data': [
            {
                'dt': 1718436600,  # 2024-06-15T07:30:00Z
                'temp': 19.0,
                'humidity': 70,
                'pressure': 1009,
                'clouds': 20,
                'visibility': 10000,
                'wind_speed': 2.0,
                'wind_deg': 200,
                'weather': [
                    {'id': 801, 'main': 'Clouds', 'description': 'few clouds', 'icon': '02d'}
                ],
            }
        ],
    }


@pytest.fixture  # type: ignore[misc]
def mock_rainviewer_response() -> dict[str, Any]:
    """Mock RainViewer weather-maps.json response"""
    return {
        'version': '2.0',
        'generated': 1718438500,
        'host': 'https://tilecache.rainviewer.com',
        'radar': {
            'past': [
                {'time': 1718437200, 'path': '/v2/radar/1718437200'},
                {'time': 1718437800, 'path': '/v2/radar/1718437800'},
                {'time': 1718438400, 'path': '/v2/radar/1718438400'},
            ],
            'nowcast': [
                {'time': 1718439000, 'path': '/v2/radar/nowcast_1718439000'},
            ],
        },
    }


@pytest.fixture  # type: ignore[misc]
def radar_frame(shiojiri: Location) -> RadarFrame:
    return RadarFrame(
        timestamp=SIGHTING_TIME,
        location=shiojiri,
        zoom=10,
        tile_url='https://tilecache.rainviewer.com/v2/radar/1718438400/256/10/904/403/1/1_1.png',
        tile_coords={'x': 904, 'y': 403, 'z': 10},
        coverage='global',
    )


@pytest.fixture  # type: ignore[misc]
def mock_weather_provider(favorable_snapshot: WeatherSnapshot) -> MagicMock:
    """Configured weather provider returning the favorable snapshot"""
    provider = MagicMock(spec=WeatherProvider)
    provider.is_configured = True
    provider.current_weather.return_value = favorable_snapshot
    provider.historical_weather.return_value = favorable_snapshot
    provider.get_provider_info.return_value = {'name': 'MockWeather', 'configured': True}
    return provider


@pytest.fixture  # type: ignore[misc]
def mock_radar_provider(radar_frame: RadarFrame) -> MagicMock:
    provider = MagicMock(spec=RainViewerRadarProvider)
    provider.radar.return_value = radar_frame
    provider.precipitation_timeline.return_value = []
    provider.nowcast.return_value = []
    provider.get_provider_info.return_value = {'name': 'MockRadar'}
    return provider


@pytest.fixture  # type: ignore[misc]
def gateway(
    mock_weather_provider: MagicMock,
    mock_radar_provider: MagicMock,
    memory_cache: MemoryCacheStore,
) -> ObservationGateway:
    return ObservationGateway(mock_weather_provider, mock_radar_provider, memory_cache)


@pytest.fixture  # type: ignore[misc]
def mock_requests_get() -> Generator[MagicMock, None, None]:
    """Mock requests.get for testing API calls"""
    with patch('weather_providers.requests.get') as mock_get:
        yield mock_get
