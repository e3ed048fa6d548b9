import os
import time
from datetime import datetime, timezone
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request
from flask_compress import Compress
from flask_socketio import SocketIO, emit
from werkzeug.exceptions import HTTPException

from cache_store import create_cache_store
from errors import (
    InternalError,
    InvalidLocationError,
    InvalidTimestampError,
    MissingLocationError,
    RainbowEngineError,
)
from models import Location, parse_instant
from observation_gateway import ObservationGateway
from rainbow_service import PhotoWeatherOrchestrator, RainbowService, RainbowWatch
from weather_providers import RainViewerRadarProvider, create_weather_provider


load_dotenv()

app = Flask(__name__)
secret_key = os.getenv('SECRET_KEY')
if not secret_key:
    import secrets

    secret_key = secrets.token_hex(16)
    print(
        'Warning: No SECRET_KEY environment variable set. '
        'Generated temporary key for this session.'
    )
app.config['SECRET_KEY'] = secret_key

# Enable gzip compression for all responses
Compress(app)

# Initialize SocketIO with secure CORS settings
cors_origins = os.getenv(
    'CORS_ALLOWED_ORIGINS', 'http://localhost:5001,http://127.0.0.1:5001'
).split(',')
socketio = SocketIO(app, cors_allowed_origins=cors_origins)

provider_timeout = float(os.getenv('PROVIDER_TIMEOUT', '10'))

# Shared cache: Redis when REDIS_URL is set, in-process otherwise
observation_cache = create_cache_store(os.getenv('REDIS_URL'))

# Weather provider is chosen once; without a key the gateway runs in degraded mode
weather_provider = create_weather_provider(
    os.getenv('OPENWEATHERMAP_API_KEY'), provider_timeout
)
radar_provider = RainViewerRadarProvider(timeout=provider_timeout)

gateway = ObservationGateway(weather_provider, radar_provider, observation_cache)
rainbow_service = RainbowService(gateway)
orchestrator = PhotoWeatherOrchestrator(gateway)
rainbow_watch = RainbowWatch(rainbow_service, observation_cache)


def error_response(error: RainbowEngineError) -> Response:
    """Render an engine error as JSON with the status its kind maps to"""
    response = jsonify({'error': error.to_dict()})
    response.status_code = error.http_status
    return response


def location_from_args(args: Any) -> Location:
    """Build a Location from lat/lon (or lng) query parameters"""
    raw_lat = args.get('lat')
    raw_lon = args.get('lon', args.get('lng'))
    if not raw_lat or not raw_lon:
        msg = 'lat and lon query parameters are required'
        raise MissingLocationError(msg)
    try:
        lat, lon = float(raw_lat), float(raw_lon)
    except ValueError as e:
        msg = f'Coordinates must be numeric, got ({raw_lat!r}, {raw_lon!r})'
        raise InvalidLocationError(msg) from e
    return Location(lat, lon)


def instant_from_args(args: Any, name: str) -> datetime | None:
    raw = args.get(name)
    try:
        return parse_instant(raw)
    except (ValueError, OverflowError) as e:
        msg = f'Invalid {name}: {raw}'
        raise InvalidTimestampError(msg) from e


@app.errorhandler(RainbowEngineError)  # type: ignore[misc]
def handle_engine_error(error: RainbowEngineError) -> Response:
    print(f'❌ {error.kind}: {error.message}')
    return error_response(error)


@app.errorhandler(Exception)  # type: ignore[misc]
def handle_unexpected_error(error: Exception) -> Response | HTTPException:
    if isinstance(error, HTTPException):
        return error
    print(f'❌ Unhandled defect on {request.path}: {error!r}')
    return error_response(InternalError('Internal server error'))


@app.route('/api/health')  # type: ignore[misc]
def health() -> Response:
    """Service health and provider configuration"""
    return jsonify(
        {
            'status': 'ok',
            'time': datetime.now(timezone.utc).isoformat(),
            **gateway.get_gateway_info(),
        }
    )


@app.route('/api/sun')  # type: ignore[misc]
def sun_api() -> Response:
    """Sun position and the day's sun events for a location"""
    location = location_from_args(request.args)
    instant = instant_from_args(request.args, 'time')
    position = rainbow_service.sun_position(location, instant)
    return jsonify({'location': location.to_dict(), 'sun': position.to_dict()})


@app.route('/api/rainbow/conditions')  # type: ignore[misc]
def rainbow_conditions_api() -> Response:
    """Rainbow favorability for a location, now or at ``time``"""
    location = location_from_args(request.args)
    instant = instant_from_args(request.args, 'time')

    print(f'🌈 Checking rainbow conditions for {location.latitude},{location.longitude}')
    assessment = rainbow_service.check_conditions(location, instant)

    response = jsonify(assessment.to_dict())
    response.headers['Cache-Control'] = 'public, max-age=300'
    return response


@app.route('/api/rainbow/sighting')  # type: ignore[misc]
def rainbow_sighting_api() -> Response:
    """Weather timeline, radar and assessment around a sighting"""
    location = location_from_args(request.args)
    captured_at = instant_from_args(request.args, 'captured_at')

    result = orchestrator.assess_for_sighting(location, captured_at)
    return jsonify(result.to_dict())


@app.route('/api/rainbow/watch')  # type: ignore[misc]
def rainbow_watch_api() -> Response:
    """Monitoring points currently favorable for rainbows"""
    alerts = rainbow_watch.scan()
    return jsonify({'alerts': [alert.to_dict() for alert in alerts]})


@app.route('/api/radar')  # type: ignore[misc]
def radar_api() -> Response:
    """Radar frame closest to ``time`` (latest when omitted)"""
    location = location_from_args(request.args)
    instant = instant_from_args(request.args, 'time')
    frame = gateway.radar(location, instant)

    response = jsonify({'radar': frame.to_dict()})
    response.headers['Cache-Control'] = 'public, max-age=300'
    return response


@app.route('/api/radar/timeline')  # type: ignore[misc]
def radar_timeline_api() -> Response:
    """Last hour of radar frames plus nowcast"""
    location = location_from_args(request.args)
    return jsonify({'radarTimeline': gateway.radar_timeline(location)})


# WebSocket event handlers
@socketio.on('connect')  # type: ignore[misc]
def handle_connect() -> None:
    """Handle client connection"""
    print(f'🔗 Client connected: {request.sid}')
    emit('engine_info', gateway.get_gateway_info())


@socketio.on('disconnect')  # type: ignore[misc]
def handle_disconnect() -> None:
    """Handle client disconnection"""
    print(f'📡 Client disconnected: {request.sid}')


@socketio.on('request_rainbow_check')  # type: ignore[misc]
def handle_rainbow_check_request(data: dict) -> None:
    """Handle a live rainbow check request from a client"""
    data = data or {}
    try:
        location = Location(data.get('lat'), data.get('lon', data.get('lng')))
        assessment = rainbow_service.check_conditions(location)
    except RainbowEngineError as e:
        print(f'❌ Rainbow check failed: {e.message}')
        emit('rainbow_error', {'error': e.to_dict()})
        return
    except Exception as e:
        print(f'❌ Rainbow check defect: {e!r}')
        emit('rainbow_error', {'error': InternalError('Internal server error').to_dict()})
        return

    emit('rainbow_update', {'location': location.to_dict(), **assessment.to_dict()})


@socketio.on('ping')  # type: ignore[misc]
def handle_ping() -> None:
    """Handle ping from client to check connection"""
    emit('pong', {'timestamp': time.time()})


if __name__ == '__main__':
    port = int(os.getenv('PORT', '5001'))
    host = os.getenv('HOST', '127.0.0.1')  # Default to localhost, allow override
    socketio.run(app, debug=False, host=host, port=port, allow_unsafe_werkzeug=True)
