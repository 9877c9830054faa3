"""Integration tests for the dashboard entry point."""
import io
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import responses

from dashboard_function import JsonFormatter, load_config, run_dashboard, setup_logging
from viewmodel.models import StatusFilter

BASE_URL = "http://events.test"


def iso_days_from_now(days, hour=10):
    moment = datetime.now(timezone.utc).replace(hour=hour, minute=0, second=0, microsecond=0)
    return (moment + timedelta(days=days)).strftime('%Y-%m-%dT%H:%M:%SZ')


@pytest.fixture
def mock_env():
    """Environment for a dashboard run."""
    return {
        'EVENTS_API_URL': BASE_URL,
        'EVENTS_API_TOKEN': 'token-123',
        'LOG_LEVEL': 'INFO',
        'TIMEOUT_SECONDS': '10'
    }


@pytest.fixture
def sample_events():
    """Two events today and one next week."""
    return [
        {"uid": "a", "start_time": iso_days_from_now(0, 10), "rejected": False,
         "summary": "Ride", "organization": "Bike DFW", "type": "social"},
        {"uid": "b", "start_time": iso_days_from_now(0, 11), "rejected": True,
         "summary": "Talk", "organization": "Walkable DFW", "type": "advocacy"},
        {"uid": "c", "start_time": iso_days_from_now(7, 9), "rejected": False,
         "summary": "Meetup", "organization": "Transit Riders", "type": "meetup",
         "location": "TBD",
         "overlay": {"location": {"value": "Main St Library", "mergeLogic": "overwrite_empty",
                                  "source": "manual", "timestamp": "", "reason": ""}}},
    ]


class TestLoadConfig:
    """Test cases for environment configuration."""

    def test_defaults(self):
        config = load_config({})

        assert config.api_url == 'http://localhost:8080'
        assert config.api_token is None
        assert config.timeout_seconds == 30
        assert config.status_filter is StatusFilter.ALL
        assert config.hide_single_events is False

    def test_overrides(self):
        config = load_config({
            'EVENTS_API_URL': 'https://events.example.org',
            'EVENTS_API_TOKEN': 'abc',
            'TIMEOUT_SECONDS': '5',
            'STATUS_FILTER': 'rejected',
            'HIDE_SINGLE_EVENTS': 'true'
        })

        assert config.api_url == 'https://events.example.org'
        assert config.api_token == 'abc'
        assert config.timeout_seconds == 5
        assert config.status_filter is StatusFilter.REJECTED
        assert config.hide_single_events is True

    def test_invalid_status_filter(self):
        with pytest.raises(ValueError):
            load_config({'STATUS_FILTER': 'pending'})


class TestRunDashboard:
    """Test cases for run_dashboard."""

    @responses.activate
    def test_successful_run(self, mock_env, sample_events):
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=sample_events)
        responses.add(responses.GET, f"{BASE_URL}/api/events/stats", json={"approved": 2, "rejected": 1})

        response = run_dashboard([], environ=mock_env)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['total_events'] == 3
        assert body['visible_events'] == 3
        assert body['stats'] == {"approved": 2, "rejected": 1}
        assert [g['count'] for g in body['groups']] == [2, 1]
        assert body['groups'][0]['heading'] == 'Today'
        assert body['groups'][0]['events'][0]['time'] == '10:00 AM'
        assert body['groups'][1]['events'][0]['location'] == 'Main St Library'
        assert body['groups'][1]['events'][0]['overlay']['location']['mergeLogic'] == 'overwrite_empty'
        assert body['review_failed'] is False
        assert responses.calls[0].request.headers['Authorization'] == 'Bearer token-123'

    @responses.activate
    def test_filters_from_arguments(self, mock_env, sample_events):
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=sample_events)
        responses.add(responses.GET, f"{BASE_URL}/api/events/stats", json={})

        response = run_dashboard(['--status-filter', 'approved'], environ=mock_env)

        body = json.loads(response['body'])
        assert body['visible_events'] == 2
        assert all(not e['rejected'] for g in body['groups'] for e in g['events'])

    @responses.activate
    def test_hide_single_events_from_environment(self, mock_env, sample_events):
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=sample_events)
        responses.add(responses.GET, f"{BASE_URL}/api/events/stats", json={})
        mock_env['HIDE_SINGLE_EVENTS'] = '1'

        response = run_dashboard([], environ=mock_env)

        body = json.loads(response['body'])
        assert [g['count'] for g in body['groups']] == [2]

    @responses.activate
    def test_approve_event(self, mock_env, sample_events):
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=sample_events)
        responses.add(responses.GET, f"{BASE_URL}/api/events/stats", json={"approved": 3, "rejected": 0})
        responses.add(responses.PATCH, f"{BASE_URL}/api/events/b", json={"status": "success"})

        response = run_dashboard(['--approve', 'b'], environ=mock_env)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['review_failed'] is False
        patch_call = [c for c in responses.calls if c.request.method == 'PATCH'][0]
        assert json.loads(patch_call.request.body) == {"recurrence_id": "", "rejected": False}
        assert body['notifications'][-1] == {
            'message': 'Event status updated successfully!',
            'level': 'success'
        }

    @responses.activate
    def test_reject_failure_reported(self, mock_env, sample_events):
        responses.add(responses.GET, f"{BASE_URL}/api/events", json=sample_events)
        responses.add(responses.GET, f"{BASE_URL}/api/events/stats", json={})
        responses.add(responses.PATCH, f"{BASE_URL}/api/events/a", status=500)

        response = run_dashboard(['--reject', 'a'], environ=mock_env)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['review_failed'] is True
        assert body['notifications'][-1]['level'] == 'error'
        rejected = {e['uid']: e['rejected'] for g in body['groups'] for e in g['events']}
        assert rejected['a'] is False

    @responses.activate
    def test_load_failure(self, mock_env):
        responses.add(responses.GET, f"{BASE_URL}/api/events", status=502)

        response = run_dashboard([], environ=mock_env)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Failed to load events'
        assert body['notifications'] == ['Failed to load events. Please try again.']
        # Stats are not requested after a failed load
        assert len(responses.calls) == 1

    @patch('dashboard_function.EventViewModel')
    def test_stats_loaded_after_events(self, mock_view_model_class, mock_env):
        mock_view_model = mock_view_model_class.return_value
        mock_view_model.load.return_value = True
        mock_view_model.grouped_events = []
        mock_view_model.total_events = 0
        mock_view_model.visible_events = 0
        mock_view_model.stats = {}

        response = run_dashboard([], environ=mock_env)

        assert response['statusCode'] == 200
        mock_view_model.load.assert_called_once()
        mock_view_model.load_stats.assert_called_once()
        mock_view_model.update_event_status.assert_not_called()


class TestLogging:
    """Test cases for JSON logging setup."""

    def test_setup_logging_installs_json_formatter(self):
        setup_logging('DEBUG')

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JsonFormatter)

    def test_json_formatter_output(self):
        record = logging.LogRecord('test', logging.ERROR, __file__, 1, 'boom %s', ('here',), None)

        data = json.loads(JsonFormatter().format(record))

        assert data['level'] == 'ERROR'
        assert data['message'] == 'boom here'
        assert data['logger'] == 'test'
        assert 'exception' not in data

    def test_json_formatter_includes_extra_fields(self):
        record = logging.makeLogRecord({
            'name': 'viewmodel.event_view_model',
            'levelno': logging.ERROR,
            'levelname': 'ERROR',
            'msg': 'Error loading events',
            'status_code': 503
        })

        data = json.loads(JsonFormatter().format(record))

        assert data['status_code'] == 503
        assert 'args' not in data
        assert 'levelno' not in data

    def test_setup_logging_writes_json_lines(self):
        stream = io.StringIO()
        setup_logging('INFO', stream=stream)

        logging.getLogger('dashboard').info("Run done", extra={'total_events': 3})

        data = json.loads(stream.getvalue().strip())
        assert data['message'] == 'Run done'
        assert data['total_events'] == 3
        assert data['logger'] == 'dashboard'

    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            record = logging.LogRecord('test', logging.ERROR, __file__, 1, 'failed', (), sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert 'ValueError: bad payload' in data['exception']
