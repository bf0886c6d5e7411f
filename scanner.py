#!/usr/bin/env python3
"""
OTA Station Scanner - logs over-the-air TV signals to a station directory

Usage:
    python scanner.py [URL] [username] [password]

Discovers HDHomeRun tuners, loads each tuner's configuration from the
directory and starts one scan thread per tuner channel.

Environment Variables:
    LOG_LEVEL: Logging level (default: INFO)
    HTTP_TIMEOUT: Seconds to wait on directory and lookup requests (default: 30)
    DEFAULT_SCAN_INTERVAL: Minutes between scans when a tuner has none set (default: 10)
    RABBITEARS_TSID_URL: Override the tsid table URL
    FCC_TVQ_URL: Override the FCC TV Query URL
"""

import logging
import os
import sys

from error_handling import TunerError
from models import DEFAULT_SCAN_INTERVAL_MINUTES
from services.callsign_service import RABBITEARS_TSID_URL
from services.fcc_license_service import FCC_TVQ_URL
from services.hdhomerun import discover_devices
from services.scheduler import bootstrap_workers

USAGE = "scanner.py [URL] [username] [password]"

logger = logging.getLogger(__name__)


def configure_logging():
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 3:
        print(USAGE)
        return 1

    server, username, password = argv
    configure_logging()

    try:
        devices = discover_devices()
    except TunerError as e:
        logger.error(f"Tuner discovery failed: {e}")
        return 1

    if not devices:
        logger.error("No HDHomeRun devices found")
        return 1

    schedulers = bootstrap_workers(
        server,
        username,
        password,
        devices,
        timeout=int(os.getenv("HTTP_TIMEOUT", "30")),
        default_scan_interval=int(os.getenv("DEFAULT_SCAN_INTERVAL", str(DEFAULT_SCAN_INTERVAL_MINUTES))),
        rabbitears_url=os.getenv("RABBITEARS_TSID_URL", RABBITEARS_TSID_URL),
        fcc_url=os.getenv("FCC_TVQ_URL", FCC_TVQ_URL),
    )

    if not schedulers:
        logger.error("No tuners could be started")
        return 1

    for scheduler in schedulers:
        scheduler.start()

    try:
        for scheduler in schedulers:
            scheduler.join()
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping scanners")
        for scheduler in schedulers:
            scheduler.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
