"""Data models for schedule processing."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FacilityDescriptor:
    """Static description of a recreation center in the EMS calendar."""
    key: str
    title: str
    building_id: int
    encrypt_d: str


@dataclass
class RawEvent:
    """Event as delivered by the EMS calendar API."""
    event_name: str
    location: str
    event_start: str
    event_end: str


@dataclass
class Event:
    """Event restricted to a day, with offset-qualified timestamps."""
    name: str
    location: str
    start: str
    end: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class FacilitySchedule:
    """Events of one recreation center bucketed by facility."""
    courts: List[Event] = field(default_factory=list)
    mount_mendota: List[Event] = field(default_factory=list)
    pool: List[Event] = field(default_factory=list)
    ice_rink: List[Event] = field(default_factory=list)
    esports: List[Event] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            'courts': [event.to_dict() for event in self.courts],
            'mount_mendota': [event.to_dict() for event in self.mount_mendota],
            'pool': [event.to_dict() for event in self.pool],
            'ice_rink': [event.to_dict() for event in self.ice_rink],
            'esports': [event.to_dict() for event in self.esports],
        }


@dataclass
class CombinedSchedule:
    """Schedules of both recreation centers for a single day."""
    bakke: FacilitySchedule
    nick: FacilitySchedule

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bakke': self.bakke.to_dict(),
            'nick': self.nick.to_dict(),
        }


class ScheduleError(Exception):
    """Base class for schedule pipeline errors."""

    def __init__(self, message: str, facility: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.facility = facility


class InvalidFacilityError(ScheduleError, ValueError):
    """Facility key is not one of the known recreation centers."""


class FetchError(ScheduleError):
    """Calendar API request failed or returned a non-200 status."""


class ParseError(ScheduleError):
    """Calendar API response could not be decoded.

    ``stage`` is ``"envelope"`` for the outer JSON object and ``"payload"``
    for the JSON string nested inside it.
    """

    def __init__(self, message: str, stage: str, facility: Optional[str] = None):
        super().__init__(message, facility=facility)
        self.stage = stage


class TimezoneLoadError(ScheduleError):
    """Local timezone data is unavailable."""


class FacilityScheduleError(ScheduleError):
    """A recreation center's pipeline failed while building the combined schedule."""

    def __init__(self, facility: str, cause: ScheduleError):
        super().__init__(
            f"error fetching the {facility} schedule: {cause}",
            facility=facility
        )
        self.cause = cause
