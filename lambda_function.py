"""AWS Lambda handler serving RecWell facility schedules."""
import json
import logging
import os
import time
from datetime import date, datetime
from typing import Dict, Any, Optional
from zoneinfo import ZoneInfo

from processor.event_processor import EventProcessor
from processor.models import (
    FacilityScheduleError,
    InvalidFacilityError,
    ScheduleError,
)
from scraper.recwell_calendar import FACILITIES, RecwellCalendarScraper
from service.schedule_service import ScheduleService


# Attributes present on every LogRecord; anything else came in through extra=.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any extra fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json',
            'Access-Control-Allow-Origin': '*'
        },
        'body': json.dumps(body)
    }


def parse_date(value: Optional[str]) -> date:
    """
    Parse the requested day from the query string.

    Args:
        value: Date in YYYY-MM-DD format, or None for today

    Returns:
        Requested day; today in the schedule timezone when value is empty

    Raises:
        ValueError: If value is not a valid YYYY-MM-DD date
    """
    if not value:
        return datetime.now(ZoneInfo(EventProcessor.TIMEZONE)).date()
    return datetime.strptime(value, '%Y-%m-%d').date()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Serve the schedule for one day.

    Expects an API Gateway proxy event with ``date`` and an optional
    ``facility`` query string parameter.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        Proxy response with statusCode, headers and JSON body
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = float(os.environ.get('TIMEOUT_SECONDS', '30'))

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    params = (event or {}).get('queryStringParameters') or {}
    facility = params.get('facility')

    try:
        day = parse_date(params.get('date'))
    except ValueError as e:
        logger.warning(f"Rejected invalid date: {params.get('date')}")
        return _response(400, {
            'message': 'date must be in YYYY-MM-DD format',
            'error': str(e),
            'error_type': type(e).__name__
        })

    if facility is not None and facility not in FACILITIES:
        logger.warning(f"Rejected unknown facility: {facility}")
        return _response(400, {
            'message': f'facility must be one of {", ".join(FACILITIES)}',
            'error_type': InvalidFacilityError.__name__,
            'facility': facility
        })

    logger.info(
        "Schedule request started",
        extra={
            'date': day.isoformat(),
            'facility': facility or 'all',
            'timeout_seconds': timeout_seconds
        }
    )

    service = ScheduleService(
        scraper=RecwellCalendarScraper(timeout=timeout_seconds),
        processor=EventProcessor()
    )

    try:
        if facility is None:
            schedule = service.fetch_schedules(day)
        else:
            schedule = service.fetch_schedule(day, facility)
    except ScheduleError as e:
        duration = time.time() - start_time
        cause = e.cause if isinstance(e, FacilityScheduleError) else e
        logger.error(
            f"Schedule request failed: {e}",
            extra={
                'facility': e.facility,
                'error_type': type(cause).__name__,
                'duration_seconds': round(duration, 2)
            },
            exc_info=True
        )
        return _response(500, {
            'message': 'Failed to fetch schedule',
            'error': str(e),
            'error_type': type(cause).__name__,
            'facility': e.facility
        })

    duration = time.time() - start_time
    logger.info(
        "Schedule request completed",
        extra={
            'date': day.isoformat(),
            'facility': facility or 'all',
            'duration_seconds': round(duration, 2)
        }
    )
    return _response(200, schedule.to_dict())
