"""
Callsign Service

Works out which broadcast callsign a scanned multiplex belongs to.

Resolution order:
1. PSIP name ending in "DT" (e.g. "WABCDT" / "WABC-DT") - strip the marker
2. PSIP name starting with a US/Canadian callsign - use the matched prefix
3. Look the transport-stream id up in the RabbitEars tsid table

A multiplex whose tsid is listed under a different RF or display channel is a
translator (low power relay) and has to be added to the directory by hand.
"""
import html
import logging
import re
from typing import Optional, Union

import requests

from error_handling import LookupServiceError, log_skip
from models import NULL_TSID, CallsignLookupRow, ScanResult, Skip

logger = logging.getLogger(__name__)

RABBITEARS_TSID_URL = "http://www.rabbitears.info/oddsandends.php?request=tsid"

# Standard calls (WABC, KQED, CBLT) and low power calls (W45AB, K7XY)
CALLSIGN_PATTERN = r"(?:[CWKX][A-Z]{2,3})|(?:[KW]\d{1,2}[A-Z]{2})"
CALLSIGN_PREFIX_RE = re.compile(rf"^({CALLSIGN_PATTERN})")
DIGITAL_SUFFIX_RE = re.compile(r"\wDT$")

SKIP_INVALID_TSID = "invalid transport-stream id"
SKIP_UNKNOWN_TSID = "unknown transport-stream id"
SKIP_TRANSLATOR = "translator, requires manual handling"


def is_null_tsid(tsid: str) -> bool:
    return (tsid or "").strip().lower() == NULL_TSID


def callsign_from_name(name: str) -> Optional[str]:
    """Derive a callsign from a PSIP program name, or None if it doesn't look like one"""
    if not name:
        return None

    if len(name) > 4 and DIGITAL_SUFFIX_RE.search(name):
        return name[:-2]

    match = CALLSIGN_PREFIX_RE.match(name)
    if match:
        return match.group(1)

    return None


def parse_tsid_table(page: str, tsid: str) -> Optional[CallsignLookupRow]:
    """Find the row for a tsid in the RabbitEars tsid table HTML.

    Returns:
        CallsignLookupRow or None if the tsid isn't listed
    """
    row_re = re.compile(
        rf"<td>{re.escape(tsid)}&nbsp;</td>"
        r"<td><a href=['\"]/market\.php\?request=station_search&(?:amp;)?callsign=\d+['\"]>"
        rf"({CALLSIGN_PATTERN})(?:-(?:TV|DT))?</a>&nbsp;</td>"
        r"<td align=['\"]right['\"]>(\d+)(?:&nbsp;)*</td>"
        r"<td align=['\"]right['\"]>(\d+)",
        re.IGNORECASE,
    )
    match = row_re.search(page)
    if not match:
        return None

    callsign, display, rf = match.groups()
    return CallsignLookupRow(tsid=tsid, callsign=html.unescape(callsign).upper(), display=int(display), rf=int(rf))


class RabbitEarsTsidLookup:
    """Lookup of transport-stream ids in the RabbitEars tsid table"""

    def __init__(self, url: str = RABBITEARS_TSID_URL, timeout: int = 30, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self) -> str:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch tsid table from {self.url}: {e}")
            raise LookupServiceError(f"tsid table unavailable: {e}")
        return response.text

    def find(self, tsid: str) -> Optional[CallsignLookupRow]:
        row = parse_tsid_table(self.fetch(), tsid)
        if row:
            logger.debug(f"tsid {tsid} listed as {row.callsign} (display {row.display}, rf {row.rf})")
        return row


class CallsignResolver:
    """Resolves the callsign of a scan result or decides it must be skipped"""

    def __init__(self, lookup: RabbitEarsTsidLookup):
        self.lookup = lookup

    def check_tsid(self, result: ScanResult, scan_time: Optional[str] = None) -> Optional[Skip]:
        """Reject the reserved null tsid before anything touches the network"""
        if not is_null_tsid(result.tsid):
            return None

        log_skip(
            SKIP_INVALID_TSID,
            result,
            detail=(
                "This is most likely a translator that has not been set up correctly. "
                "You can add this station manually, but note that the tsid might change in the future "
                "when it gets set properly and will be re-added"
            ),
            scan_time=scan_time,
        )
        return Skip(SKIP_INVALID_TSID)

    def resolve(self, result: ScanResult, scan_time: Optional[str] = None) -> Union[str, Skip]:
        """Return the callsign for a scan result, or a Skip.

        Raises:
            LookupServiceError: the tsid table could not be fetched
        """
        skip = self.check_tsid(result, scan_time)
        if skip:
            return skip

        program = result.primary_program
        callsign = callsign_from_name(program.name)
        if callsign:
            return callsign

        logger.info(f"Getting callsign from RabbitEars for tsid {result.tsid}")
        row = self.lookup.find(result.tsid)

        if row is None:
            log_skip(SKIP_UNKNOWN_TSID, result, detail="Couldn't find callsign for tsid, add manually", scan_time=scan_time)
            return Skip(SKIP_UNKNOWN_TSID)

        if not _same_channel(row.rf, result.channel) or row.display != int(program.major):
            log_skip(
                SKIP_TRANSLATOR,
                result,
                detail=(
                    f"Found a translator of {row.callsign} ({result.tsid}), "
                    f"listed on RF channel {row.rf}, display channel {row.display}; add manually"
                ),
                scan_time=scan_time,
            )
            return Skip(SKIP_TRANSLATOR)

        return row.callsign


def _same_channel(listed: int, scanned) -> bool:
    try:
        return int(listed) == int(scanned)
    except (TypeError, ValueError):
        return False
