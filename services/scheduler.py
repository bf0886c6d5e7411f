"""
Background scheduler for periodic tuner scans

One scheduler (and one thread) per tuner channel. Schedulers share nothing:
each owns its tuner, its engine and its own HTTP sessions.
"""

import logging
import threading
from typing import Callable, List, Optional, Tuple

from error_handling import DirectoryError, TunerError, handle_errors
from models import DEFAULT_SCAN_INTERVAL_MINUTES, ScanSummary, TunerConfig
from services.callsign_service import RABBITEARS_TSID_URL, RabbitEarsTsidLookup
from services.directory_client import DEFAULT_TIMEOUT, StationDirectoryClient
from services.fcc_license_service import FCC_TVQ_URL, FccLicenseLookup
from services.hdhomerun import DeviceInfo, HDHomeRunTuner
from services.reconciliation_service import ReconciliationEngine, build_engine

logger = logging.getLogger(__name__)


class TunerScanScheduler:
    """Scheduler that scans one tuner channel on a fixed interval, forever"""

    def __init__(
        self,
        config: Optional[TunerConfig],
        engine: Optional[ReconciliationEngine],
        tuner,
        loader: Optional[Callable[[], Tuple[TunerConfig, ReconciliationEngine]]] = None,
        retry_seconds: int = DEFAULT_SCAN_INTERVAL_MINUTES * 60,
        label: str = "",
    ):
        """
        Initialize scheduler

        Args:
            config: Tuner configuration (interval in minutes), or None until loaded
            engine: Reconciliation engine bound to this tuner, or None until loaded
            tuner: Driver object whose scan() yields ScanResults
            loader: Returns (config, engine); called each interval until it succeeds
            retry_seconds: Wait between attempts while no configuration is loaded
            label: Name used in logs before the configuration is known
        """
        self.config = config
        self.engine = engine
        self.tuner = tuner
        self.loader = loader
        self.retry_seconds = retry_seconds
        self.label = label
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.last_summary: Optional[ScanSummary] = None

    @property
    def name(self) -> str:
        if self.config is None:
            return self.label or repr(self.tuner)
        return self.config.name or f"{self.config.tuner_id}/{self.config.tuner_number}"

    @property
    def interval_seconds(self) -> int:
        if self.config is None:
            return self.retry_seconds
        return self.config.scan_interval_seconds

    def start(self):
        """Start the scheduler"""
        if self.running:
            logger.warning(f"Scheduler for {self.name} already running")
            return

        self.running = True
        self._stop_event.clear()
        self.thread = threading.Thread(target=self._run, name=f"scan-{self.name}", daemon=True)
        self.thread.start()
        logger.info(f"Scan scheduler started for {self.name} (interval: {self.interval_seconds // 60} minutes)")

    def stop(self):
        """Stop the scheduler"""
        self.running = False
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=5)
        logger.info(f"Scan scheduler stopped for {self.name}")

    def join(self):
        if self.thread:
            self.thread.join()

    def load(self) -> bool:
        """Fetch the tuner configuration and build the engine. False while the directory is unavailable."""
        try:
            self.config, self.engine = self.loader()
        except DirectoryError as e:
            logger.warning(f"Could not load configuration for {self.name}, retrying in {self.retry_seconds} seconds: {e}")
            return False

        logger.info(f"Loaded configuration for {self.name} (interval: {self.config.scan_interval} minutes)")
        return True

    @handle_errors(default_message="Scan failed")
    def run_once(self) -> Optional[ScanSummary]:
        """Run one hardware scan and reconcile every result it produces"""
        if self.engine is None and not self.load():
            return None

        summary = self.engine.run_scan(self.tuner.scan())
        self.last_summary = summary
        return summary

    def _run(self):
        """Main scheduler loop - scan, sleep, repeat"""
        while self.running:
            self.run_once()

            # Event.wait returns early when stop() is called
            if self._stop_event.wait(self.interval_seconds):
                break


def _engine_loader(
    directory: StationDirectoryClient,
    device_id: str,
    index: int,
    default_scan_interval: Optional[int],
    rabbitears_url: str,
    fcc_url: str,
    timeout: int,
) -> Callable[[], Tuple[TunerConfig, ReconciliationEngine]]:
    def load():
        config = directory.get_tuner_config(device_id, index, default_scan_interval=default_scan_interval)
        engine = build_engine(
            config,
            directory,
            RabbitEarsTsidLookup(rabbitears_url, timeout=timeout),
            FccLicenseLookup(fcc_url, timeout=timeout),
        )
        return config, engine

    return load


def bootstrap_workers(
    base_url: str,
    username: str,
    password: str,
    devices: List[DeviceInfo],
    timeout: int = DEFAULT_TIMEOUT,
    default_scan_interval: Optional[int] = None,
    rabbitears_url: str = RABBITEARS_TSID_URL,
    fcc_url: str = FCC_TVQ_URL,
    tuner_factory: Callable = HDHomeRunTuner,
) -> List[TunerScanScheduler]:
    """Build one scheduler per (device, tuner) pair.

    A channel whose tuner can't be opened is reported and left out; the
    others still start. Configuration is loaded by each worker, which keeps
    retrying every interval while the directory is unavailable.
    """
    schedulers = []
    retry_seconds = (default_scan_interval or DEFAULT_SCAN_INTERVAL_MINUTES) * 60

    for device in devices:
        for index in range(device.tuner_count):
            try:
                tuner = tuner_factory(device.id, index)
            except TunerError as e:
                logger.error(f"Skipping tuner {device.id}/{index}: {e}")
                continue

            directory = StationDirectoryClient(base_url, username, password, timeout=timeout)
            loader = _engine_loader(directory, device.id, index, default_scan_interval, rabbitears_url, fcc_url, timeout)
            scheduler = TunerScanScheduler(
                None, None, tuner, loader=loader, retry_seconds=retry_seconds, label=f"{device.id}/{index}"
            )
            # Later attempts happen on the worker thread
            scheduler.load()
            schedulers.append(scheduler)

    return schedulers
