"""Builds recreation center schedules for a single day."""
import logging
from datetime import date
from typing import Optional

from processor.event_processor import EventProcessor
from processor.models import (
    CombinedSchedule,
    FacilitySchedule,
    FacilityScheduleError,
    ScheduleError,
)
from scraper.recwell_calendar import FACILITIES, RecwellCalendarScraper

logger = logging.getLogger(__name__)


class ScheduleService:
    """Runs the fetch, decode and process pipeline per recreation center."""

    def __init__(
        self,
        scraper: Optional[RecwellCalendarScraper] = None,
        processor: Optional[EventProcessor] = None
    ):
        self.scraper = scraper or RecwellCalendarScraper()
        self.processor = processor or EventProcessor()

    def fetch_schedule(self, day: date, facility: str) -> FacilitySchedule:
        """
        Build the schedule of one recreation center.

        Args:
            day: Requested local calendar day
            facility: Facility key ("bakke" or "nick")

        Returns:
            FacilitySchedule for the day

        Raises:
            ScheduleError: Subclass matching the failing pipeline step
        """
        raw_events = self.scraper.fetch_events(day, facility)
        return self.processor.process_events(raw_events, day)

    def fetch_schedules(self, day: date) -> CombinedSchedule:
        """
        Build the schedules of both recreation centers.

        Facilities are fetched one after another; the first failure aborts
        the whole request.

        Args:
            day: Requested local calendar day

        Returns:
            CombinedSchedule for the day

        Raises:
            FacilityScheduleError: Naming the facility whose pipeline failed
        """
        schedules = {}
        for facility in FACILITIES:
            try:
                schedules[facility] = self.fetch_schedule(day, facility)
            except ScheduleError as e:
                logger.error(
                    f"Failed to build {facility} schedule: {e}",
                    extra={'facility': facility, 'error_type': type(e).__name__}
                )
                raise FacilityScheduleError(facility, e) from e

        return CombinedSchedule(**schedules)
