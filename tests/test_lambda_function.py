"""Integration tests for Lambda handler."""
import json
import logging
import os
from datetime import date
from unittest.mock import Mock, patch

import pytest

from lambda_function import JsonFormatter, lambda_handler, parse_date
from processor.models import (
    CombinedSchedule,
    Event,
    FacilitySchedule,
    FacilityScheduleError,
    FetchError,
    TimezoneLoadError,
)


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'LOG_LEVEL': 'INFO',
        'TIMEOUT_SECONDS': '15'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 128
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def sample_schedule():
    """Create a combined schedule with one court event."""
    court = Event(
        name='Basketball & Volleyball',
        location='Court 1',
        start='2025-04-11T06:00:00-05:00',
        end='2025-04-11T07:00:00-05:00'
    )
    return CombinedSchedule(
        bakke=FacilitySchedule(courts=[court]),
        nick=FacilitySchedule()
    )


def api_event(**params):
    return {'queryStringParameters': params or None}


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    @patch('lambda_function.RecwellCalendarScraper')
    @patch('lambda_function.ScheduleService')
    def test_combined_schedule(
        self,
        mock_service_class,
        mock_scraper_class,
        mock_env,
        mock_context,
        sample_schedule
    ):
        """Test both facilities are returned for a valid date."""
        mock_service = Mock()
        mock_service.fetch_schedules.return_value = sample_schedule
        mock_service_class.return_value = mock_service

        response = lambda_handler(api_event(date='2025-04-11'), mock_context)

        assert response['statusCode'] == 200
        assert response['headers']['Content-Type'] == 'application/json'
        assert response['headers']['Access-Control-Allow-Origin'] == '*'
        body = json.loads(response['body'])
        assert body['bakke']['courts'][0]['name'] == 'Basketball & Volleyball'
        assert body['nick'] == {
            'courts': [], 'mount_mendota': [], 'pool': [], 'ice_rink': [], 'esports': []
        }
        mock_service.fetch_schedules.assert_called_once_with(date(2025, 4, 11))
        mock_scraper_class.assert_called_once_with(timeout=15.0)

    @patch('lambda_function.ScheduleService')
    def test_single_facility(self, mock_service_class, mock_env, mock_context, sample_schedule):
        """Test the facility parameter returns one facility schedule."""
        mock_service = Mock()
        mock_service.fetch_schedule.return_value = sample_schedule.bakke
        mock_service_class.return_value = mock_service

        response = lambda_handler(
            api_event(date='2025-04-11', facility='bakke'), mock_context
        )

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert len(body['courts']) == 1
        mock_service.fetch_schedule.assert_called_once_with(date(2025, 4, 11), 'bakke')
        mock_service.fetch_schedules.assert_not_called()

    @patch('lambda_function.ScheduleService')
    def test_unknown_facility(self, mock_service_class, mock_env, mock_context):
        """Test an unknown facility is rejected before fetching."""
        response = lambda_handler(
            api_event(date='2025-04-11', facility='recplex'), mock_context
        )

        assert response['statusCode'] == 400
        body = json.loads(response['body'])
        assert body['error_type'] == 'InvalidFacilityError'
        assert body['facility'] == 'recplex'
        mock_service_class.assert_not_called()

    @pytest.mark.parametrize('value', ['04/11/2025', '2025-13-01', 'today'])
    @patch('lambda_function.ScheduleService')
    def test_invalid_date(self, mock_service_class, value, mock_env, mock_context):
        """Test malformed dates are rejected."""
        response = lambda_handler(api_event(date=value), mock_context)

        assert response['statusCode'] == 400
        mock_service_class.assert_not_called()

    @patch('lambda_function.ScheduleService')
    def test_missing_date_defaults_to_today(
        self, mock_service_class, mock_env, mock_context, sample_schedule
    ):
        """Test a request without a date uses the current local day."""
        mock_service = Mock()
        mock_service.fetch_schedules.return_value = sample_schedule
        mock_service_class.return_value = mock_service

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        (requested,), _ = mock_service.fetch_schedules.call_args
        assert isinstance(requested, date)

    @patch('lambda_function.ScheduleService')
    def test_facility_failure(self, mock_service_class, mock_env, mock_context):
        """Test a failing facility yields a 500 naming the facility."""
        mock_service = Mock()
        mock_service.fetch_schedules.side_effect = FacilityScheduleError(
            'nick', FetchError('unexpected status code 503', facility='nick')
        )
        mock_service_class.return_value = mock_service

        response = lambda_handler(api_event(date='2025-04-11'), mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Failed to fetch schedule'
        assert body['facility'] == 'nick'
        assert body['error_type'] == 'FetchError'
        assert '503' in body['error']

    @patch('lambda_function.ScheduleService')
    def test_single_facility_failure(self, mock_service_class, mock_env, mock_context):
        """Test a stage error for one facility is reported directly."""
        mock_service = Mock()
        mock_service.fetch_schedule.side_effect = TimezoneLoadError(
            'error loading America/Chicago timezone data'
        )
        mock_service_class.return_value = mock_service

        response = lambda_handler(
            api_event(date='2025-04-11', facility='nick'), mock_context
        )

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['error_type'] == 'TimezoneLoadError'
        assert body['facility'] is None


class TestParseDate:
    """Test cases for request date parsing."""

    def test_valid_date(self):
        assert parse_date('2025-04-11') == date(2025, 4, 11)

    def test_empty_is_today(self):
        assert isinstance(parse_date(None), date)
        assert isinstance(parse_date(''), date)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            parse_date('2025-02-30')


class TestJsonFormatter:
    """Test cases for structured log output."""

    def test_includes_extra_fields(self):
        """Test extra= values are emitted alongside the message."""
        record = logging.makeLogRecord({
            'name': 'test',
            'levelname': 'INFO',
            'msg': 'Fetched %d events',
            'args': (3,),
            'facility': 'bakke'
        })

        log_data = json.loads(JsonFormatter().format(record))

        assert log_data['message'] == 'Fetched 3 events'
        assert log_data['level'] == 'INFO'
        assert log_data['facility'] == 'bakke'
        assert 'args' not in log_data
