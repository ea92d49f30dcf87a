"""Tests for the HTTP API."""

import pytest

from delaywatch.app import create_app
from delaywatch.errors import ProviderAuthError


@pytest.fixture
def app(store, provider, gateway, fanout):
    app = create_app(
        start_polling=False,
        store=store,
        provider=provider,
        gateway=gateway,
        fanout=fanout,
    )
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def test_health(client):
    assert client.get('/health').get_json() == {'status': 'ok'}


class TestMonitorRoutes:
    def test_add_list_remove(self, client):
        response = client.post('/api/monitor/add', json={'airportCode': 'jfk', 'airportName': 'Kennedy'})
        assert response.status_code == 200
        assert response.get_json()['airports'] == [{'code': 'JFK', 'name': 'Kennedy'}]

        client.post('/api/monitor/add', json={'airportCode': 'JFK', 'airportName': 'Kennedy'})
        listed = client.get('/api/monitor/list').get_json()
        assert listed['airports'] == [{'code': 'JFK', 'name': 'Kennedy'}]

        removed = client.post('/api/monitor/remove', json={'airportCode': 'JFK'}).get_json()
        assert removed['airports'] == []

    def test_invalid_airport_rejected(self, client):
        response = client.post('/api/monitor/add', json={'airportCode': 'NOTAPORT'})

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_manual_check_runs_cycle(self, client, provider, gateway, make_flight):
        client.post('/api/monitor/add', json={'airportCode': 'JFK'})
        client.post('/api/recipients', json={'phoneNumber': '+15550109999'})
        provider.boards['JFK'] = [make_flight('AA100', delay=25)]

        response = client.post('/api/monitor/check')

        assert response.status_code == 200
        cycle = response.get_json()['cycle']
        assert cycle['airports'][0]['delayEvents'][0]['isNew'] is True
        assert cycle['airports'][0]['notifications'][0]['success'] is True
        assert len(gateway.sent) == 1

    def test_status(self, client):
        payload = client.get('/api/status').get_json()

        assert payload['polling']['running'] is False
        assert payload['store']['airports'] == 0
        assert 'check_interval_minutes' in payload['config']


class TestRecipientRoutes:
    def test_register_and_remove(self, client):
        added = client.post('/api/recipients', json={'phoneNumber': '+1 555 010 9999'}).get_json()
        assert added['recipients'] == ['+15550109999']

        assert client.get('/api/recipients').get_json()['recipients'] == ['+15550109999']

        removed = client.delete('/api/recipients', json={'phoneNumber': '+15550109999'}).get_json()
        assert removed['recipients'] == []

    def test_invalid_number_rejected(self, client):
        response = client.post('/api/recipients', json={'phoneNumber': 'call me'})
        assert response.status_code == 400


class TestFlightRoutes:
    def test_live_board(self, client, provider, store, make_flight):
        provider.boards['JFK'] = [make_flight('AA100', delay=25)]

        payload = client.get('/api/flights/jfk').get_json()

        assert payload['flights'][0]['flightNumber'] == 'AA100'
        assert provider.calls == [('JFK', 'departures')]
        # Manual lookups bypass detection and history
        assert store.load_all_records() == []
        assert store.get_tracked_state('JFK') == {}

    def test_bad_direction(self, client):
        assert client.get('/api/flights/JFK?type=sideways').status_code == 400

    def test_provider_error_status(self, client, provider):
        provider.boards['JFK'] = ProviderAuthError('Invalid API key')

        response = client.get('/api/flights/JFK')

        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Invalid API key'}

    def test_airport_search(self, client):
        airports = client.get('/api/airports/search?query=toronto').get_json()['airports']
        assert [a['code'] for a in airports] == ['YYZ']

        assert len(client.get('/api/airports/popular').get_json()['airports']) == 8


class TestAnalyticsRoute:
    def test_report(self, client, store, make_flight):
        store.append_records('JFK', [make_flight(delay=20), make_flight('UA200')])

        response = client.get('/api/analytics?timeFilter=24h')

        assert response.status_code == 200
        analytics = response.get_json()['analytics']
        assert analytics['timeFilter'] == '24h'
        assert analytics['totalFlights'] == 2
        assert analytics['onTimePercentage'] == 50.0

    def test_unknown_filter_means_all(self, client):
        analytics = client.get('/api/analytics?timeFilter=decade').get_json()['analytics']
        assert analytics['timeFilter'] == 'all'
        assert analytics['totalFlights'] == 0
