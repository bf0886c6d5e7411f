"""
Scan Reconciliation Service

Reconciles tuner scan results against the station directory.

For every multiplex a tuner reports:
1. Empty multiplexes (no programs) are ignored
2. The directory is searched by (tsid, display channel)
3. One match is reused, more than one is inconsistent and skipped
4. No match: resolve callsign and licensed location, then create the station
5. A signal log is written against the resolved station

Problems with one result never stop the rest of the scan: skips and failed
lookups are logged with the raw signal metrics and processing moves on.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from error_handling import ScannerError, log_skip
from models import LogEntry, ScanResult, ScanSummary, Skip, Station, TunerConfig
from services.callsign_service import CallsignResolver
from services.directory_client import StationDirectoryClient
from services.fcc_license_service import LocationResolver

logger = logging.getLogger(__name__)

SCAN_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

STATUS_FILTERED = "filtered"
STATUS_MATCHED = "matched"
STATUS_CREATED = "created"
STATUS_SKIPPED = "skipped"

SKIP_AMBIGUOUS = "inconsistent directory data"
SKIP_STATION_REJECTED = "station create rejected by directory"


@dataclass
class ScanOutcome:
    """What happened to one scan result"""

    status: str
    station: Optional[Station] = None
    log_entry: Optional[LogEntry] = None
    reason: Optional[str] = None


class ReconciliationEngine:
    """Matches scan results for one tuner to directory stations and logs signal quality"""

    def __init__(
        self,
        config: TunerConfig,
        directory: StationDirectoryClient,
        callsign_resolver: CallsignResolver,
        location_resolver: LocationResolver,
    ):
        self.config = config
        self.directory = directory
        self.callsign_resolver = callsign_resolver
        self.location_resolver = location_resolver
        self.scan_time: Optional[str] = None

    def run_scan(self, results: Iterable[ScanResult]) -> ScanSummary:
        """Process every result of one scan pass, in order"""
        self.scan_time = datetime.now().strftime(SCAN_TIME_FORMAT)
        summary = ScanSummary(scan_time=self.scan_time)

        for result in results:
            outcome = self.process(result)

            if outcome.status == STATUS_FILTERED:
                summary.filtered += 1
            elif outcome.status == STATUS_MATCHED:
                summary.matched += 1
            elif outcome.status == STATUS_CREATED:
                summary.created += 1
            else:
                summary.skipped += 1
                summary.skip_reasons.append(outcome.reason)

            if outcome.log_entry is not None:
                summary.logged += 1

        logger.info(
            f"{self.config.name or self.config.tuner_id} scan at {summary.scan_time}: "
            f"{summary.matched} known, {summary.created} new, {summary.skipped} skipped, {summary.logged} logged"
        )
        return summary

    def process(self, result: ScanResult) -> ScanOutcome:
        """Take one scan result through lookup, resolution, creation and logging"""
        if result.program_count <= 0:
            logger.debug(f"Ignoring empty multiplex on rf channel {result.channel}")
            return ScanOutcome(STATUS_FILTERED)

        program = result.primary_program
        logger.info(
            f"{self.config.name} found station: {program.name} with virtual channel {program.major}. "
            f"Using PSIP program number {program.number}"
        )

        skip = self.callsign_resolver.check_tsid(result, self.scan_time)
        if skip:
            return ScanOutcome(STATUS_SKIPPED, reason=skip.reason)

        try:
            station, status = self._resolve_station(result)
        except (ScannerError, ValueError) as e:
            log_skip(f"lookup failed: {e}", result, scan_time=self.scan_time)
            return ScanOutcome(STATUS_SKIPPED, reason=str(e))
        except Exception as e:
            logger.error(f"Unexpected error processing tsid {result.tsid}", exc_info=True)
            log_skip(f"unexpected error: {e}", result, scan_time=self.scan_time)
            return ScanOutcome(STATUS_SKIPPED, reason=str(e))

        if isinstance(station, Skip):
            return ScanOutcome(STATUS_SKIPPED, reason=station.reason)

        log_entry = self._create_log(result, station)
        return ScanOutcome(status, station=station, log_entry=log_entry)

    def _resolve_station(self, result: ScanResult):
        """Return (Station or Skip, status)"""
        program = result.primary_program
        matches = self.directory.find_stations(result.tsid, program.major, result.channel)

        if len(matches) > 1:
            log_skip(
                SKIP_AMBIGUOUS,
                result,
                detail=f"Invalid number of results for station: {len(matches)}",
                scan_time=self.scan_time,
            )
            return Skip(SKIP_AMBIGUOUS), STATUS_SKIPPED

        if len(matches) == 1:
            return matches[0], STATUS_MATCHED

        return self._new_station(result), STATUS_CREATED

    def _new_station(self, result: ScanResult):
        program = result.primary_program

        callsign = self.callsign_resolver.resolve(result, self.scan_time)
        if isinstance(callsign, Skip):
            return callsign

        location = self.location_resolver.resolve(callsign, result, self.scan_time)
        if isinstance(location, Skip):
            return location

        station = Station(
            tsid=result.tsid,
            callsign=callsign,
            parent_callsign=None,
            rf=int(result.channel),
            display=int(program.major),
            latitude=location.latitude,
            longitude=location.longitude,
            distance=location.distance,
        )

        success, created = self.directory.create_station(station)
        if not success or created is None:
            log_skip(
                SKIP_STATION_REJECTED,
                result,
                detail=f"Directory did not confirm station {callsign}; nothing will be logged for it",
                scan_time=self.scan_time,
            )
            return Skip(SKIP_STATION_REJECTED)

        logger.info(f"Created station #{created.id} ({created.callsign})")
        return created

    def _create_log(self, result: ScanResult, station: Station) -> Optional[LogEntry]:
        if station.id is None:
            logger.warning(f"Station {station.callsign} has no directory id, not logging signal")
            return None

        status = result.status
        entry = LogEntry(
            signal_strength=status.signal_strength if status else 0,
            signal_to_noise=status.signal_to_noise if status else 0,
            signal_quality=status.symbol_error_rate if status else 0,
            station_id=station.id,
            tuner_id=self.config.id,
        )

        try:
            success, created = self.directory.create_log(entry)
        except ScannerError as e:
            logger.error(f"Failed to log signal for station #{station.id} ({station.callsign}): {e}")
            return None

        if not success or created is None:
            logger.warning(f"Directory did not confirm log for station #{station.id} ({station.callsign})")
            return None

        logger.info(f"Created log #{created.id}")
        return created


def build_engine(config: TunerConfig, directory: StationDirectoryClient, callsign_lookup, license_lookup):
    """Wire an engine for one tuner from its lookups"""
    return ReconciliationEngine(
        config=config,
        directory=directory,
        callsign_resolver=CallsignResolver(callsign_lookup),
        location_resolver=LocationResolver(license_lookup, config.latitude, config.longitude),
    )
