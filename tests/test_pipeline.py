"""End-to-end tests for the poll cycle."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from delaywatch.analytics.delay_detection import DelayDetector
from delaywatch.errors import ProviderRateLimitError
from delaywatch.ingestion.aviationstack_client import AviationStackClient
from delaywatch.ingestion.pipeline import MonitorPipeline

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def pipeline(provider, store, airports, recipients, fanout):
    return MonitorPipeline(
        provider=provider,
        store=store,
        airports=airports,
        recipients=recipients,
        fanout=fanout,
        detector=DelayDetector(15, 10),
        direction='departures',
    )


def test_new_delay_notifies_once(pipeline, provider, store, airports, recipients, gateway, make_flight):
    airports.add('JFK')
    recipients.add('+15550109999')

    provider.boards['JFK'] = [make_flight('AA100', delay=20)]
    first = pipeline.process_airport('JFK', now=NOW)

    assert first.ok
    assert len(first.events) == 1
    assert first.events[0].is_new
    assert len(gateway.sent) == 1
    assert gateway.sent[0][0] == '+15550109999'
    assert store.get_tracked_state('JFK')['AA100'].delay_minutes == 20

    provider.boards['JFK'] = [make_flight('AA100', delay=21)]
    second = pipeline.process_airport('JFK', now=NOW + timedelta(minutes=15))

    assert second.events == []
    assert len(gateway.sent) == 1
    # History is appended on every poll, event or not
    assert len(store.load_all_records()) == 2


def test_worsening_sends_update(pipeline, provider, recipients, gateway, make_flight):
    recipients.add('+15550109999')

    provider.boards['JFK'] = [make_flight('AA100', delay=20)]
    pipeline.process_airport('JFK', now=NOW)
    provider.boards['JFK'] = [make_flight('AA100', delay=35)]
    outcome = pipeline.process_airport('JFK', now=NOW + timedelta(minutes=15))

    assert [e.is_new for e in outcome.events] == [False]
    assert gateway.sent[-1][1].startswith('FLIGHT DELAY (UPDATE)')


def test_provider_failure_does_not_stop_cycle(pipeline, provider, store, airports, make_flight):
    airports.add('JFK')
    airports.add('LAX')
    provider.boards['JFK'] = ProviderRateLimitError('API rate limit exceeded')
    provider.boards['LAX'] = [make_flight('UA200', dep='LAX', arr='SFO', delay=30)]

    summary = pipeline.run_cycle()

    assert [call[0] for call in provider.calls] == ['JFK', 'LAX']
    assert summary.failed_airports == ['JFK']
    assert summary.event_count == 1
    assert 'ProviderRateLimitError' in summary.outcomes[0].error
    assert [r.airport_code for r in store.load_all_records()] == ['LAX']
    assert pipeline.stats['error_count'] == 1


def test_airports_do_not_share_tracked_state(pipeline, provider, airports, make_flight):
    airports.add('JFK')
    airports.add('LAX')
    provider.boards['JFK'] = [make_flight('AA100', delay=20)]
    provider.boards['LAX'] = [make_flight('UA200', dep='LAX', delay=0)]

    pipeline.run_cycle()
    summary = pipeline.run_cycle()

    assert summary.event_count == 0


def test_no_recipients_still_tracks_and_stores(pipeline, provider, store, gateway, make_flight):
    provider.boards['JFK'] = [make_flight('AA100', delay=40)]

    outcome = pipeline.process_airport('JFK', now=NOW)

    assert len(outcome.events) == 1
    assert outcome.deliveries == []
    assert gateway.sent == []
    assert store.load_trend_points()[0].average_delay == 40.0


def test_empty_registry_cycle(pipeline, provider):
    summary = pipeline.run_cycle()

    assert summary.outcomes == []
    assert provider.calls == []
    assert summary.finished_at is not None
    assert pipeline.stats['cycle_count'] == 1


def test_cycle_callbacks_receive_summary(pipeline, airports, provider, make_flight):
    airports.add('JFK')
    provider.boards['JFK'] = [make_flight()]
    seen = []
    pipeline.add_cycle_callback(seen.append)
    pipeline.add_cycle_callback(lambda summary: 1 / 0)

    summary = pipeline.run_cycle()

    assert seen == [summary]


def test_summary_to_dict(pipeline, airports, provider, make_flight):
    airports.add('JFK')
    provider.boards['JFK'] = [make_flight(delay=20)]

    payload = pipeline.run_cycle().to_dict()

    airport = payload['airports'][0]
    assert airport['airport'] == 'JFK'
    assert airport['flights'] == 1
    assert airport['error'] is None
    assert airport['delayEvents'][0]['delayMinutes'] == 20


def test_unexpected_error_does_not_stop_cycle(pipeline, provider, store, airports, make_flight):
    airports.add('JFK')
    airports.add('LAX')
    provider.boards['JFK'] = RuntimeError('board parser exploded')
    provider.boards['LAX'] = [make_flight('UA200', dep='LAX', delay=30)]

    summary = pipeline.run_cycle()

    assert summary.failed_airports == ['JFK']
    assert 'RuntimeError' in summary.outcomes[0].error
    assert summary.outcomes[1].ok
    assert [r.airport_code for r in store.load_all_records()] == ['LAX']
    assert pipeline.stats['error_count'] == 1


def test_malformed_board_from_client_does_not_stop_cycle(store, airports, recipients, fanout):
    client = AviationStackClient(api_key='test-key', min_request_interval=0)
    boards = {
        'JFK': {'data': [{'flight': {'iata': 'AA1'}, 'departure': 'garbled'}]},
        'LAX': {'data': [{'flight': {'iata': 'UA200'}, 'departure': {'iata': 'LAX', 'delay': 5}}]},
    }

    def fake_get(url, params, timeout):
        return MagicMock(status_code=200, json=MagicMock(return_value=boards[params['dep_iata']]))

    client.session = MagicMock()
    client.session.get.side_effect = fake_get

    airports.add('JFK')
    airports.add('LAX')
    pipeline = MonitorPipeline(client, store, airports, recipients, fanout, DelayDetector(15, 10))

    summary = pipeline.run_cycle()

    assert summary.failed_airports == ['JFK']
    assert 'ProviderTransientError' in summary.outcomes[0].error
    assert [r.flight_number for r in store.load_all_records()] == ['UA200']


def test_continuous_polling_survives_cycle_error(pipeline):
    calls = []

    def flaky_cycle():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError('store exploded')
        pipeline.stop()

    pipeline.run_cycle = flaky_cycle
    pipeline.run_continuous(interval=0.001)

    assert len(calls) == 2
    assert pipeline.stats['error_count'] == 1
