"""Event processor for filtering, normalizing and categorizing schedule events."""
import html
import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.models import Event, FacilitySchedule, RawEvent, TimezoneLoadError

logger = logging.getLogger(__name__)


# Checked in order, first match wins.
FACILITY_KEYWORDS: List[Tuple[str, str]] = [
    ('court', 'courts'),
    ('mount mendota', 'mount_mendota'),
    ('pool', 'pool'),
    ('ice rink', 'ice_rink'),
    ('esports', 'esports'),
]


class EventProcessor:
    """Processor turning raw calendar events into a facility schedule."""

    TIMEZONE = 'America/Chicago'
    TIME_FORMAT = '%Y-%m-%dT%H:%M:%S'

    def process_events(self, raw_events: List[RawEvent], day: date) -> FacilitySchedule:
        """
        Run the filter, normalize and categorize steps for one facility.

        Args:
            raw_events: Raw events from the scraper
            day: Requested local calendar day

        Returns:
            FacilitySchedule with the day's events bucketed by facility
        """
        same_day = self.filter_same_day(raw_events, day)
        events = self.escape_strings(same_day)
        schedule = self.categorize(events)

        categorized = sum(
            len(getattr(schedule, category)) for _, category in FACILITY_KEYWORDS
        )
        logger.info(
            f"Processed {categorized} categorized events out of "
            f"{len(raw_events)} raw events",
            extra={
                'date': day.isoformat(),
                'same_day_events': len(same_day),
                'dropped_uncategorized': len(events) - categorized
            }
        )
        return schedule

    def filter_same_day(self, raw_events: List[RawEvent], day: date) -> List[Event]:
        """
        Keep events starting on the requested local day.

        Provider timestamps carry no offset; their clock value is UTC and is
        shifted into the local timezone before comparing dates.

        Args:
            raw_events: Raw events from the scraper
            day: Requested local calendar day

        Returns:
            Events with offset-qualified start and end timestamps

        Raises:
            TimezoneLoadError: If the local timezone cannot be loaded
        """
        tz = self._load_timezone()
        if isinstance(day, datetime):
            day = day.date()

        events = []
        for raw in raw_events:
            try:
                start = self._to_local(raw.event_start, tz)
                end = self._to_local(raw.event_end, tz)
            except ValueError as e:
                logger.debug(f"Skipping event '{raw.event_name}': {e}")
                continue

            if start.date() != day:
                continue

            events.append(Event(
                name=raw.event_name,
                location=raw.location,
                start=start.isoformat(),
                end=end.isoformat()
            ))

        return events

    def escape_strings(self, events: List[Event]) -> List[Event]:
        """
        Decode HTML entities and trim surrounding whitespace of display fields.

        Args:
            events: Events from the date filter

        Returns:
            New Event objects with cleaned name and location
        """
        return [
            replace(
                event,
                name=html.unescape(event.name).strip(),
                location=html.unescape(event.location).strip()
            )
            for event in events
        ]

    def categorize(self, events: List[Event]) -> FacilitySchedule:
        """
        Bucket events by the first facility keyword found in their location.

        Events matching no keyword are dropped.

        Args:
            events: Normalized events

        Returns:
            FacilitySchedule preserving input order within each bucket
        """
        schedule = FacilitySchedule()
        for event in events:
            location = event.location.lower()
            for keyword, category in FACILITY_KEYWORDS:
                if keyword in location:
                    getattr(schedule, category).append(event)
                    break

        return schedule

    def _to_local(self, timestamp: str, tz: ZoneInfo) -> datetime:
        naive = datetime.strptime(timestamp, self.TIME_FORMAT)
        return naive.replace(tzinfo=timezone.utc).astimezone(tz)

    def _load_timezone(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise TimezoneLoadError(
                f"error loading {self.TIMEZONE} timezone data"
            ) from e
