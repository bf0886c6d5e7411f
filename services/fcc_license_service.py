"""
FCC License Service

Looks up a station's licensed transmitter site in the FCC TV Query database
and works out how far it is from the receiver.

The tvq endpoint is queried with:
- call: callsign of the station
- chan: lower bound on channel number to search
- cha2: upper bound on channel number to search
- list: (4) text output, pipe delimited

Each output line is one license or application. Special Temporary
Authorities (STA) are ignored; a full license (LIC) beats any construction
permit (CP) listed after it.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import requests

from error_handling import LookupServiceError, log_skip
from models import Location, ScanResult, Skip
from services.geo import haversine_miles

logger = logging.getLogger(__name__)

FCC_TVQ_URL = "https://transition.fcc.gov/fcc-bin/tvq"
FCC_TEXT_LIST = 4

SKIP_NO_LICENSE = "translator/no licensed location found"

# Column indices in tvq list=4 output (0-based, after the leading separator)
COL_CALLSIGN = 1
COL_LICENSE_TYPE = 3
COL_CHANNEL = 4
COL_CITY = 10
COL_STATE = 11
COL_FILE_NUMBER = 13
COL_ERP = 14
COL_HAAT = 16
COL_FACILITY_ID = 18
COL_LAT_HEMISPHERE = 19
COL_LAT_DEG = 20
COL_LAT_MIN = 21
COL_LAT_SEC = 22
COL_LON_HEMISPHERE = 23
COL_LON_DEG = 24
COL_LON_MIN = 25
COL_LON_SEC = 26
COL_LICENSEE = 27


def dms_to_decimal(degrees, minutes, seconds, hemisphere: str) -> float:
    """Convert degrees/minutes/seconds plus N/S/E/W to signed decimal degrees"""
    value = float(degrees or 0) + float(minutes or 0) / 60 + float(seconds or 0) / 3600
    if (hemisphere or "").strip().upper() in ("S", "W"):
        return -value
    return value


@dataclass(frozen=True)
class LicenseRecord:
    """One row of tvq output"""

    callsign: str
    license_type: str
    channel: str
    city: str
    state: str
    file_number: str
    erp: str
    haat: str
    facility_id: str
    licensee: str
    latitude: float
    longitude: float

    @property
    def is_sta(self) -> bool:
        return "STA" in self.license_type.upper()

    @property
    def is_license(self) -> bool:
        return "LIC" in self.license_type.upper()

    @classmethod
    def from_tokens(cls, tokens: List[str]) -> "LicenseRecord":
        def col(index):
            return tokens[index] if index < len(tokens) else ""

        return cls(
            callsign=col(COL_CALLSIGN),
            license_type=col(COL_LICENSE_TYPE),
            channel=col(COL_CHANNEL),
            city=col(COL_CITY),
            state=col(COL_STATE),
            file_number=col(COL_FILE_NUMBER),
            erp=col(COL_ERP),
            haat=col(COL_HAAT),
            facility_id=col(COL_FACILITY_ID),
            licensee=col(COL_LICENSEE),
            latitude=dms_to_decimal(col(COL_LAT_DEG), col(COL_LAT_MIN), col(COL_LAT_SEC), col(COL_LAT_HEMISPHERE)),
            longitude=dms_to_decimal(col(COL_LON_DEG), col(COL_LON_MIN), col(COL_LON_SEC), col(COL_LON_HEMISPHERE)),
        )


def parse_tvq_response(text: str) -> List[List[str]]:
    """Split tvq text output into rows of stripped tokens, dropping blank lines"""
    rows = []
    for line in (text or "").strip().splitlines():
        if not line.strip():
            continue
        rows.append([token.strip() for token in line.split("|")])
    return rows


class FccLicenseLookup:
    """Client for the FCC TV Query text interface"""

    def __init__(self, url: str = FCC_TVQ_URL, timeout: int = 30, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def query(self, callsign: str, channel) -> List[List[str]]:
        params = {"call": callsign, "chan": channel, "cha2": channel, "list": FCC_TEXT_LIST}
        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"FCC license query for {callsign} on channel {channel} failed: {e}")
            raise LookupServiceError(f"FCC license query failed: {e}")

        rows = parse_tvq_response(response.text)
        logger.debug(f"FCC returned {len(rows)} records for {callsign} on channel {channel}")
        return rows


def select_location(rows: List[List[str]], receiver_lat: float, receiver_lon: float) -> Location:
    """Pick the authoritative licensed site from tvq rows.

    Rows are taken in order. STA rows are ignored, the first other row is
    the current answer, and a LIC row ends the search.
    """
    location = Location()

    for tokens in rows:
        record = LicenseRecord.from_tokens(tokens)
        if record.is_sta:
            continue

        distance = haversine_miles(receiver_lat, receiver_lon, record.latitude, record.longitude)
        location = Location(distance=distance, latitude=record.latitude, longitude=record.longitude)

        if record.is_license:
            logger.debug(
                f"Using license {record.file_number} for {record.callsign} "
                f"({record.city}, {record.state}), {distance:.1f} miles away"
            )
            break

    return location


class LocationResolver:
    """Resolves where a station transmits from, relative to one receiver"""

    def __init__(self, lookup: FccLicenseLookup, receiver_lat: float, receiver_lon: float):
        self.lookup = lookup
        self.receiver_lat = receiver_lat
        self.receiver_lon = receiver_lon

    def resolve(self, callsign: str, result: ScanResult, scan_time: Optional[str] = None) -> Union[Location, Skip]:
        """Return the station's Location, or a Skip when nothing is licensed.

        Raises:
            LookupServiceError: the FCC query failed
        """
        rows = self.lookup.query(callsign, result.channel)

        if not rows:
            log_skip(
                SKIP_NO_LICENSE,
                result,
                detail=f"Found a translator of {callsign} on channel {result.channel}, add manually",
                scan_time=scan_time,
            )
            return Skip(SKIP_NO_LICENSE)

        location = select_location(rows, self.receiver_lat, self.receiver_lon)
        if location.latitude is None:
            logger.warning(f"Only temporary authorities listed for {callsign} on channel {result.channel}")
        return location
