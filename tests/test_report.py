"""Tests for the rolling analytics report."""

from datetime import datetime, timedelta, timezone

import pytest

from delaywatch.analytics.report import AnalyticsAggregator, AnalyticsReport, TimeFilter, scheduled_hour

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def aggregator(store):
    return AnalyticsAggregator(store)


class TestTimeFilter:
    def test_known_values(self):
        assert TimeFilter.parse('24h') is TimeFilter.DAY
        assert TimeFilter.parse('7d') is TimeFilter.WEEK
        assert TimeFilter.parse('30d') is TimeFilter.MONTH
        assert TimeFilter.parse('1y') is TimeFilter.YEAR
        assert TimeFilter.parse('all') is TimeFilter.ALL

    def test_unknown_values_mean_all(self):
        assert TimeFilter.parse('bogus') is TimeFilter.ALL
        assert TimeFilter.parse(None) is TimeFilter.ALL
        assert TimeFilter.ALL.window is None


def test_scheduled_hour():
    assert scheduled_hour('2025-06-01T10:30:00+00:00') == 10
    assert scheduled_hour('2025-06-01T23:05:00Z') == 23
    assert scheduled_hour('2025-06-01T07:00:00-05:00') == 7
    assert scheduled_hour(None) is None
    assert scheduled_hour('not a time') is None


def test_empty_history_gives_zero_report(aggregator):
    report = aggregator.generate_report('24h', now=NOW)

    assert report == AnalyticsReport(time_filter=TimeFilter.DAY)
    payload = report.to_dict()
    assert payload['totalFlights'] == 0
    assert payload['averageDelay'] == 0.0
    assert payload['onTimePercentage'] == 100.0
    assert payload['statusDistribution'] == {'onTime': 0, 'delayed': 0, 'cancelled': 0, 'active': 0}
    assert payload['recentDelays'] == []


def test_window_filtering(store, aggregator, make_flight):
    store.append_records('JFK', [make_flight('OLD', delay=30)], timestamp=NOW - timedelta(days=40))
    store.append_records('JFK', [make_flight('MID', delay=20)], timestamp=NOW - timedelta(days=2))
    store.append_records('JFK', [make_flight('NEW', delay=10)], timestamp=NOW - timedelta(hours=2))

    assert aggregator.generate_report('24h', now=NOW).total_flights == 1
    assert aggregator.generate_report('7d', now=NOW).total_flights == 2
    assert aggregator.generate_report('30d', now=NOW).total_flights == 2
    assert aggregator.generate_report('1y', now=NOW).total_flights == 3
    assert aggregator.generate_report('all', now=NOW).total_flights == 3
    assert aggregator.generate_report('bogus', now=NOW).total_flights == 3


def test_window_boundary_is_inclusive(store, aggregator, make_flight):
    store.append_records('JFK', [make_flight()], timestamp=NOW - timedelta(days=1))
    assert aggregator.generate_report('24h', now=NOW).total_flights == 1


def test_headline_numbers(store, aggregator, make_flight):
    flights = [make_flight(f'F{i}') for i in range(7)] + [
        make_flight('D1', delay=10),
        make_flight('D2', delay=20),
        make_flight('D3', delay=45),
    ]
    store.append_records('JFK', flights, timestamp=NOW)

    report = aggregator.generate_report('all', now=NOW)

    assert report.total_flights == 10
    assert report.delayed_flights == 3
    assert report.on_time_flights == 7
    assert report.on_time_percentage == 70.0
    assert report.average_delay == 25.0


def test_average_delay_rounds_half_up(store, aggregator, make_flight):
    store.append_records('JFK', [
        make_flight('D1', delay=10),
        make_flight('D2', delay=11),
        make_flight('D3', delay=11),
    ], timestamp=NOW)

    report = aggregator.generate_report('all', now=NOW)
    assert report.average_delay == 10.7
    assert report.on_time_percentage == 0.0


def test_status_distribution_priority(store, aggregator, make_flight):
    store.append_records('JFK', [
        make_flight('C1', delay=30, status='cancelled'),
        make_flight('A1', delay=30, status='active'),
        make_flight('D1', delay=5, status='scheduled'),
        make_flight('L1', delay=0, status='landed'),
        make_flight('S1', delay=0, status='scheduled'),
    ], timestamp=NOW)

    dist = aggregator.generate_report('all', now=NOW).status_distribution

    assert dist.cancelled == 1
    assert dist.active == 1
    assert dist.delayed == 1
    assert dist.on_time == 2
    assert dist.cancelled + dist.active + dist.delayed + dist.on_time == 5


def test_airline_delays_top_five(store, aggregator, make_flight):
    flights = [
        make_flight('X1', delay=10, airline='Alpha'),
        make_flight('X2', delay=21, airline='Alpha'),
        make_flight('X3', delay=60, airline='Bravo'),
        make_flight('X4', delay=5, airline='Charlie'),
        make_flight('X5', delay=30, airline='Delta'),
        make_flight('X6', delay=40, airline='Echo'),
        make_flight('X7', delay=50, airline='Foxtrot'),
        make_flight('X8', delay=0, airline='Golf'),
    ]
    store.append_records('JFK', flights, timestamp=NOW)

    airline_delays = aggregator.generate_report('all', now=NOW).airline_delays

    assert list(airline_delays.items()) == [
        ('Bravo', 60),
        ('Foxtrot', 50),
        ('Echo', 40),
        ('Delta', 30),
        ('Alpha', 16),
    ]


def test_hourly_distribution(store, aggregator, make_flight):
    store.append_records('JFK', [
        make_flight('H1', scheduled='2025-06-01T14:10:00+00:00'),
        make_flight('H2', scheduled='2025-06-01T09:45:00+00:00'),
        make_flight('H3', scheduled='2025-06-01T14:55:00+00:00'),
        make_flight('H4', scheduled=None),
    ], timestamp=NOW)

    report = aggregator.generate_report('all', now=NOW)

    assert report.hourly_distribution == {9: 1, 14: 2}
    assert report.to_dict()['hourlyDistribution'] == {'9': 1, '14': 2}


def test_top_destinations(store, aggregator, make_flight):
    arrivals = ['LAX'] * 4 + ['SFO'] * 3 + ['ORD'] * 2 + ['MIA', 'SEA', 'BOS']
    store.append_records(
        'JFK',
        [make_flight(f'F{i}', arr=code) for i, code in enumerate(arrivals)],
        timestamp=NOW,
    )

    top = aggregator.generate_report('all', now=NOW).top_destinations

    assert list(top.items()) == [('LAX', 4), ('SFO', 3), ('ORD', 2), ('MIA', 1), ('SEA', 1)]


def test_recent_delays(store, aggregator, make_flight):
    for i in range(25):
        store.append_records(
            'JFK',
            [make_flight(f'S{i}', delay=15 + i), make_flight(f'M{i}', delay=14)],
            timestamp=NOW - timedelta(minutes=25 - i),
        )

    recent = aggregator.generate_report('all', now=NOW).recent_delays

    assert len(recent) == 20
    assert all(r.delay >= 15 for r in recent)
    assert recent[0].flight_number == 'S24'
    assert [r.timestamp for r in recent] == sorted((r.timestamp for r in recent), reverse=True)
    assert recent[0].to_dict()['departure'] == 'JFK'


def test_delay_trends_not_clipped_to_window(store, aggregator, make_flight):
    store.append_records('JFK', [make_flight(delay=30)], timestamp=NOW - timedelta(days=40))
    store.append_records('JFK', [make_flight(delay=20)], timestamp=NOW - timedelta(hours=1))

    report = aggregator.generate_report('24h', now=NOW)

    assert report.total_flights == 1
    assert [t.average_delay for t in report.delay_trends] == [30.0, 20.0]


def test_report_is_idempotent(store, aggregator, make_flight):
    store.append_records('JFK', [
        make_flight('AA100', delay=20),
        make_flight('UA200', delay=0, arr='SFO'),
    ], timestamp=NOW)

    first = aggregator.generate_report('7d', now=NOW)
    second = aggregator.generate_report('7d', now=NOW)

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_report_payload_keys(store, aggregator, make_flight):
    store.append_records('JFK', [make_flight(delay=20)], timestamp=NOW)

    payload = aggregator.generate_report('all', now=NOW).to_dict()

    assert set(payload) == {
        'timeFilter', 'totalFlights', 'delayedFlights', 'onTimeFlights', 'averageDelay',
        'onTimePercentage', 'statusDistribution', 'airlineDelays', 'delayTrends',
        'hourlyDistribution', 'topDestinations', 'recentDelays',
    }
    assert payload['delayTrends'] == [{'timestamp': NOW.isoformat(), 'averageDelay': 20.0}]
