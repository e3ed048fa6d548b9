"""ABOUTME: Test WebSocket functionality for the rainbow engine
ABOUTME: Tests WebSocket event handlers and live rainbow checks"""

from unittest.mock import MagicMock, patch

from flask_socketio import SocketIOTestClient

from errors import ConfigurationMissingError
from main import app, socketio
from models import RainbowAssessment


# Test constants
SHIOJIRI_LAT = 36.115
SHIOJIRI_LON = 137.954


def events_named(received: list[dict], name: str) -> list[dict]:
    return [event for event in received if event['name'] == name]


class TestWebSocketHandlers:
    """Test WebSocket event handlers"""

    def test_handle_connect(self) -> None:
        """Test client connection handler"""
        client = SocketIOTestClient(app, socketio)
        received = client.get_received()

        # Should receive engine_info on connect
        assert len(received) == 1
        assert received[0]['name'] == 'engine_info'
        info = received[0]['args'][0]
        assert 'weather_configured' in info
        assert 'radar_provider' in info

    def test_handle_disconnect(self) -> None:
        """Test client disconnection handler"""
        client = SocketIOTestClient(app, socketio)
        client.disconnect()
        assert not client.is_connected()

    @patch('main.rainbow_service.check_conditions')
    def test_handle_rainbow_check_request(self, mock_check: MagicMock) -> None:
        """Test live rainbow check request handler"""
        mock_check.return_value = RainbowAssessment(is_favorable=True, score=100)

        client = SocketIOTestClient(app, socketio)
        client.get_received()
        client.emit('request_rainbow_check', {'lat': SHIOJIRI_LAT, 'lon': SHIOJIRI_LON})

        updates = events_named(client.get_received(), 'rainbow_update')
        assert len(updates) == 1
        payload = updates[0]['args'][0]
        assert payload['score'] == 100
        assert payload['location'] == {'lat': SHIOJIRI_LAT, 'lng': SHIOJIRI_LON}

    def test_rainbow_check_with_invalid_location(self) -> None:
        client = SocketIOTestClient(app, socketio)
        client.get_received()
        client.emit('request_rainbow_check', {'lat': 200, 'lon': SHIOJIRI_LON})

        errors = events_named(client.get_received(), 'rainbow_error')
        assert len(errors) == 1
        assert errors[0]['args'][0]['error']['code'] == 'InvalidLocation'

    def test_rainbow_check_without_payload(self) -> None:
        client = SocketIOTestClient(app, socketio)
        client.get_received()
        client.emit('request_rainbow_check', {})

        errors = events_named(client.get_received(), 'rainbow_error')
        assert errors[0]['args'][0]['error']['code'] == 'InvalidLocation'

    @patch('main.rainbow_service.check_conditions')
    def test_rainbow_check_provider_error(self, mock_check: MagicMock) -> None:
        mock_check.side_effect = ConfigurationMissingError('no key')

        client = SocketIOTestClient(app, socketio)
        client.get_received()
        client.emit('request_rainbow_check', {'lat': SHIOJIRI_LAT, 'lon': SHIOJIRI_LON})

        received = client.get_received()
        assert events_named(received, 'rainbow_update') == []
        errors = events_named(received, 'rainbow_error')
        assert errors[0]['args'][0]['error'] == {
            'code': 'ConfigurationMissing',
            'message': 'no key',
        }

    @patch('main.rainbow_service.check_conditions')
    def test_rainbow_check_unexpected_error(self, mock_check: MagicMock) -> None:
        mock_check.side_effect = RuntimeError('boom')

        client = SocketIOTestClient(app, socketio)
        client.get_received()
        client.emit('request_rainbow_check', {'lat': SHIOJIRI_LAT, 'lon': SHIOJIRI_LON})

        errors = events_named(client.get_received(), 'rainbow_error')
        assert errors[0]['args'][0]['error']['code'] == 'Internal'

    def test_handle_ping(self) -> None:
        """Test ping handler"""
        client = SocketIOTestClient(app, socketio)
        client.get_received()
        client.emit('ping')

        pongs = events_named(client.get_received(), 'pong')
        assert len(pongs) == 1
        assert 'timestamp' in pongs[0]['args'][0]
