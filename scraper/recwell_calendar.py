"""Client for the UW RecWell EMS cloud calendar."""
import json
import logging
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import requests

from processor.models import (
    FacilityDescriptor,
    FetchError,
    InvalidFacilityError,
    ParseError,
    RawEvent,
)

logger = logging.getLogger(__name__)


FACILITIES: Mapping[str, FacilityDescriptor] = MappingProxyType({
    'bakke': FacilityDescriptor(
        key='bakke',
        title='Bakke Recreation and Wellbeing Center',
        building_id=1112,
        encrypt_d=(
            'https://uwmadison.emscloudservice.com/web/CustomBrowseEvents.aspx?data='
            'meoZqrqZMvHKSLWaHS%2f4bjdroAMc1geNvtL12O1chw1fIP%2bOGy79Y1bkm2DPPKqmpSFHyPv'
            'FHX3LAJJHEfBPycyxctYlpcHD4rIwd%2byAtBNWXsKhJT9UDchzs%2bSc3Ze6JFHimlPlQrL2Jk7'
            'LFEkj3FoTWmA0BKzQQk0%2beDFO2IBZSiNnDXPGZQ%3d%3d'
        )
    ),
    'nick': FacilityDescriptor(
        key='nick',
        title='Nicholas Recreation Center',
        building_id=1109,
        encrypt_d=(
            'https://uwmadison.emscloudservice.com/web/CustomBrowseEvents.aspx?data='
            'RtFXo1hK2Mh0UPlwkh3Aua7auJ66NvvBNBlUULUwM7vu4XjCwc5WoatHUWdz5pRofwluz9ZmHCNb'
            'HsgQ9uEDZjArIem0ShC%2fuM4gJbohNWkNGhzqKkAwrHDWzuEbcQxjHc8CzLweyL05oQ7ToCjKk'
            'M5TC%2b639V3qHwqgx1EhbWU%3d'
        )
    ),
})


class RecwellCalendarScraper:
    """Fetches and decodes a day's reservations from the EMS calendar API."""

    BASE_URL = (
        "https://uwmadison.emscloudservice.com"
        "/web/AnonymousServersApi.aspx/CustomBrowseEvents"
    )
    TIME_FORMAT_CODE = 0

    def __init__(self, timeout: Optional[float] = 30):
        """
        Initialize the calendar scraper.

        Args:
            timeout: HTTP request timeout in seconds, None waits indefinitely
        """
        self.timeout = timeout

    def fetch_events(self, day: date, facility: str) -> List[RawEvent]:
        """
        Fetch and decode the raw events of one recreation center.

        Args:
            day: Calendar day to request
            facility: Facility key ("bakke" or "nick")

        Returns:
            List of RawEvent objects in provider order
        """
        payload = self.fetch_schedule_json(day, facility)
        events = self.parse_events(payload, facility=facility)
        logger.info(
            f"Fetched {len(events)} raw events for {facility}",
            extra={'facility': facility, 'date': day.isoformat()}
        )
        return events

    def fetch_schedule_json(self, day: date, facility: str) -> bytes:
        """
        POST the browse-events request for a facility and day.

        Args:
            day: Calendar day to request
            facility: Facility key ("bakke" or "nick")

        Returns:
            Raw response body

        Raises:
            InvalidFacilityError: If the facility key is unknown
            FetchError: If encoding, transport, or the HTTP status fails
        """
        descriptor = FACILITIES.get(facility)
        if descriptor is None:
            raise InvalidFacilityError(
                f'facility must be one of {", ".join(FACILITIES)}, got "{facility}"',
                facility=facility
            )

        body = self._build_request_body(day, descriptor)
        try:
            encoded = json.dumps(body)
        except (TypeError, ValueError) as e:
            raise FetchError(
                f"failed to encode request body: {e}", facility=facility
            ) from e

        try:
            logger.debug(f"Requesting {facility} schedule for {body['date']}")
            response = requests.post(
                self.BASE_URL,
                data=encoded,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise FetchError(
                f"failed to make HTTP request: {e}", facility=facility
            ) from e

        if response.status_code != 200:
            raise FetchError(
                f"unexpected status code {response.status_code}",
                facility=facility
            )

        return response.content

    def parse_events(self, payload, facility: Optional[str] = None) -> List[RawEvent]:
        """
        Decode the two-layer response envelope into raw events.

        The API returns ``{"data": "<json text>"}`` where the nested text
        decodes to ``{"events": [...]}``.

        Args:
            payload: Response body (bytes or str)
            facility: Facility key, attached to raised errors

        Returns:
            List of RawEvent objects

        Raises:
            ParseError: If the envelope or the nested payload is malformed
        """
        try:
            envelope = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise ParseError(
                f"error parsing response envelope: {e}",
                stage='envelope', facility=facility
            ) from e
        if not isinstance(envelope, dict):
            raise ParseError(
                "error parsing response envelope: expected a JSON object",
                stage='envelope', facility=facility
            )

        inner = self._get_field(envelope, 'data')
        if inner is None:
            inner = ''
        if not isinstance(inner, str):
            raise ParseError(
                "error parsing response envelope: data is not a string",
                stage='envelope', facility=facility
            )

        try:
            content = json.loads(inner)
        except ValueError as e:
            raise ParseError(
                f"error parsing schedule payload: {e}",
                stage='payload', facility=facility
            ) from e
        if not isinstance(content, dict):
            raise ParseError(
                "error parsing schedule payload: expected a JSON object",
                stage='payload', facility=facility
            )

        items = self._get_field(content, 'events')
        if items is None:
            return []
        if not isinstance(items, list):
            raise ParseError(
                "error parsing schedule payload: events is not a list",
                stage='payload', facility=facility
            )

        return [self._parse_event(item, facility) for item in items]

    def _parse_event(self, item: Any, facility: Optional[str]) -> RawEvent:
        """Build a RawEvent from one decoded event object."""
        if not isinstance(item, dict):
            raise ParseError(
                "error parsing schedule payload: event is not an object",
                stage='payload', facility=facility
            )

        values = {}
        for name in ('eventName', 'location', 'eventStart', 'eventEnd'):
            value = self._get_field(item, name)
            if value is None:
                value = ''
            if not isinstance(value, str):
                raise ParseError(
                    f"error parsing schedule payload: {name} is not a string",
                    stage='payload', facility=facility
                )
            values[name] = value

        return RawEvent(
            event_name=values['eventName'],
            location=values['location'],
            event_start=values['eventStart'],
            event_end=values['eventEnd']
        )

    @staticmethod
    def _get_field(obj: Dict[str, Any], name: str) -> Any:
        """Look up a key, falling back to a case-insensitive match."""
        if name in obj:
            return obj[name]
        lowered = name.lower()
        for key, value in obj.items():
            if key.lower() == lowered:
                return value
        return None

    def _build_request_body(self, day: date, descriptor: FacilityDescriptor) -> Dict[str, Any]:
        return {
            'date': day.strftime('%Y-%m-%d'),
            'data': {
                'buildingId': descriptor.building_id,
                'title': descriptor.title,
                'format': self.TIME_FORMAT_CODE,
                'dropEventsInPast': False,
                'encryptD': descriptor.encrypt_d,
            }
        }
