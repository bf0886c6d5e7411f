"""
Pytest configuration and shared fixtures for test suite

Provides tuner configuration, scan result and FCC record builders.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from models import Program, ScanResult, SignalStatus, TunerConfig
from services.directory_client import StationDirectoryClient


def make_result(tsid="0x1234", channel="7", name="WABC-DT", major=7, minor=1, number=3, programs=None, status=None):
    """Build a ScanResult with a single program unless programs is given"""
    if programs is None:
        programs = (Program(number=number, major=major, minor=minor, name=name),)
    if status is None:
        status = SignalStatus(signal_strength=80, signal_to_noise=60, symbol_error_rate=100)
    return ScanResult(tsid=tsid, channel=channel, programs=tuple(programs), status=status)


def make_tvq_line(callsign="WABC-TV", license_type="LIC", channel="7", lat=(40, 30, 0, "N"), lon=(74, 0, 0, "W")):
    """Build one pipe-delimited tvq list=4 line"""
    tokens = [""] * 37
    tokens[1] = callsign
    tokens[3] = license_type
    tokens[4] = channel
    tokens[5] = "DT"
    tokens[10] = "NEW YORK"
    tokens[11] = "NY"
    tokens[12] = "US"
    tokens[13] = "BLCDT-20000101AAA"
    tokens[14] = "80.0  kW"
    tokens[16] = "487.0"
    tokens[18] = "1328"
    tokens[19] = lat[3]
    tokens[20], tokens[21], tokens[22] = str(lat[0]), str(lat[1]), str(lat[2])
    tokens[23] = lon[3]
    tokens[24], tokens[25], tokens[26] = str(lon[0]), str(lon[1]), str(lon[2])
    tokens[27] = "AMERICAN BROADCASTING COMPANIES, INC."
    return "|".join(f"{t:<6}" if t else "      " for t in tokens)


@pytest.fixture
def tuner_config():
    """Tuner configuration with the receiver at (40.5, -74.5)"""
    return TunerConfig(
        id=12,
        tuner_id="1010CC54",
        tuner_number=0,
        name="Rooftop",
        latitude=40.5,
        longitude=-74.5,
        scan_interval=10,
    )


@pytest.fixture
def directory():
    """Mocked directory client"""
    return MagicMock(spec=StationDirectoryClient)


@pytest.fixture
def scan_result():
    return make_result()
