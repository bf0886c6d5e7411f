"""
Data models for the OTA station scanner

These are plain value objects. Stations and logs are owned by the remote
station directory; the scanner only builds payloads and reads responses.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Reserved tsid reported by translators whose PSIP was never configured
NULL_TSID = "0x0001"

DEFAULT_SCAN_INTERVAL_MINUTES = 10


@dataclass(frozen=True)
class Program:
    """A PSIP program carried in a multiplex"""

    number: int
    major: int
    minor: int
    name: str


@dataclass(frozen=True)
class SignalStatus:
    """Signal metrics reported by the tuner while locked"""

    signal_strength: int
    signal_to_noise: int
    symbol_error_rate: int


@dataclass(frozen=True)
class ScanResult:
    """A single multiplex detected by a tuner scan"""

    tsid: str
    channel: str
    programs: Tuple[Program, ...] = ()
    status: Optional[SignalStatus] = None

    @property
    def program_count(self) -> int:
        return len(self.programs)

    @property
    def primary_program(self) -> Optional[Program]:
        """The program at index 0; everything keys off this one"""
        return self.programs[0] if self.programs else None


@dataclass
class Station:
    """A broadcast station as stored in the directory"""

    tsid: str
    callsign: str
    rf: int
    display: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance: Optional[float] = None
    parent_callsign: Optional[str] = None
    id: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        """Body of a station create request (directory assigns the id)"""
        return {
            "tsid": self.tsid,
            "callsign": self.callsign,
            "parent_callsign": self.parent_callsign,
            "rf": self.rf,
            "display": self.display,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distance": self.distance,
        }


@dataclass
class LogEntry:
    """Signal quality sample for one station seen by one tuner"""

    signal_strength: int
    signal_to_noise: int
    signal_quality: int
    station_id: int
    tuner_id: Any
    id: Optional[int] = None
    created_at: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "signal_strength": self.signal_strength,
            "signal_to_noise": self.signal_to_noise,
            "signal_quality": self.signal_quality,
            "station_id": self.station_id,
            "tuner_id": self.tuner_id,
        }


@dataclass(frozen=True)
class TunerConfig:
    """Per-tuner configuration loaded from the directory before scanning starts"""

    id: Any
    tuner_id: str
    tuner_number: int
    latitude: float
    longitude: float
    name: str = ""
    scan_interval: int = DEFAULT_SCAN_INTERVAL_MINUTES

    @property
    def scan_interval_seconds(self) -> int:
        return self.scan_interval * 60


@dataclass(frozen=True)
class Skip:
    """Outcome meaning "stop working on this scan result", with the reason"""

    reason: str


@dataclass(frozen=True)
class Location:
    """Licensed transmitter location and its distance from the receiver"""

    distance: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class CallsignLookupRow:
    """A row of the external tsid table"""

    tsid: str
    callsign: str
    display: int
    rf: int


@dataclass
class ScanSummary:
    """Counts for one pass over a tuner's scan results"""

    scan_time: str
    filtered: int = 0
    matched: int = 0
    created: int = 0
    skipped: int = 0
    logged: int = 0
    skip_reasons: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.filtered + self.matched + self.created + self.skipped
