"""
HDHomeRun tuner driver

Drives SiliconDust HDHomeRun network tuners through the `hdhomerun_config`
command line utility:

- `hdhomerun_config discover` lists devices on the LAN
- `http://<ip>/discover.json` reports each device's TunerCount
- `hdhomerun_config <id> scan /tuner<n>` walks the channel map

Scan output looks like:

    SCANNING: 473000000 (us-bcast:14)
    LOCK: 8vsb (ss=80 snq=50 seq=100)
    TSID: 0x0817
    PROGRAM 3: 7.1 WABC-DT
    PROGRAM 4: 7.2 LiveWel

Only channels that reach LOCK produce a ScanResult.
"""
import logging
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

import requests

from error_handling import TunerError
from models import Program, ScanResult, SignalStatus

logger = logging.getLogger(__name__)

HDHOMERUN_CONFIG = "hdhomerun_config"
DISCOVER_TIMEOUT = 10

DISCOVER_RE = re.compile(r"hdhomerun device (?P<id>[0-9A-Fa-f]{8}) found at (?P<ip>[0-9.]+)")
SCANNING_RE = re.compile(r"^SCANNING:\s+(?P<frequency>\d+)\s+\((?P<map>[^:)]+):(?P<channel>\d+)\)")
LOCK_RE = re.compile(r"^LOCK:\s+(?P<modulation>\S+)\s+\(ss=(?P<ss>\d+)\s+snq=(?P<snq>\d+)\s+seq=(?P<seq>\d+)")
TSID_RE = re.compile(r"^TSID:\s+(?P<tsid>0x[0-9A-Fa-f]+)")
PROGRAM_RE = re.compile(r"^PROGRAM\s+(?P<number>\d+):\s+(?P<major>\d+)(?:\.(?P<minor>\d+))?\s*(?P<name>.*)$")


@dataclass(frozen=True)
class DeviceInfo:
    """A physical HDHomeRun found on the network"""

    id: str
    ip: str
    tuner_count: int


def _config_binary() -> str:
    path = shutil.which(HDHOMERUN_CONFIG)
    if not path:
        raise TunerError(f"{HDHOMERUN_CONFIG} not found on PATH")
    return path


def discover_devices(session=None) -> List[DeviceInfo]:
    """Find HDHomeRun devices and how many tuners each has"""
    binary = _config_binary()
    try:
        proc = subprocess.run([binary, "discover"], capture_output=True, text=True, timeout=DISCOVER_TIMEOUT)
    except subprocess.TimeoutExpired:
        raise TunerError("HDHomeRun discovery timed out")

    session = session or requests.Session()
    devices = []
    for match in DISCOVER_RE.finditer(proc.stdout):
        device_id = match.group("id").upper()
        ip = match.group("ip")
        try:
            response = session.get(f"http://{ip}/discover.json", timeout=DISCOVER_TIMEOUT)
            response.raise_for_status()
            tuner_count = int(response.json().get("TunerCount", 0))
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Could not read tuner count from {device_id} at {ip}: {e}")
            continue

        logger.info(f"Found HDHomeRun {device_id} at {ip} with {tuner_count} tuners")
        devices.append(DeviceInfo(id=device_id, ip=ip, tuner_count=tuner_count))

    return devices


def parse_scan_output(lines: Iterable[str]) -> Iterator[ScanResult]:
    """Turn `hdhomerun_config scan` output into ScanResults, one per locked channel"""
    channel: Optional[str] = None
    status: Optional[SignalStatus] = None
    tsid: Optional[str] = None
    programs: List[Program] = []

    def flush():
        if channel is not None and status is not None:
            return ScanResult(tsid=tsid or "", channel=channel, programs=tuple(programs), status=status)
        return None

    for raw in lines:
        line = raw.strip()
        if not line:
            continue

        match = SCANNING_RE.match(line)
        if match:
            result = flush()
            if result:
                yield result
            channel = match.group("channel")
            status, tsid, programs = None, None, []
            continue

        if channel is None:
            continue

        match = LOCK_RE.match(line)
        if match:
            if match.group("modulation") == "none":
                continue
            status = SignalStatus(
                signal_strength=int(match.group("ss")),
                signal_to_noise=int(match.group("snq")),
                symbol_error_rate=int(match.group("seq")),
            )
            continue

        match = TSID_RE.match(line)
        if match:
            tsid = match.group("tsid").lower()
            continue

        match = PROGRAM_RE.match(line)
        if match:
            programs.append(
                Program(
                    number=int(match.group("number")),
                    major=int(match.group("major")),
                    minor=int(match.group("minor") or 0),
                    name=match.group("name").strip(),
                )
            )

    result = flush()
    if result:
        yield result


class HDHomeRunTuner:
    """One tuner of an HDHomeRun device"""

    def __init__(self, device_id: str, tuner_number: int):
        self.binary = _config_binary()
        self.device_id = device_id
        self.tuner_number = int(tuner_number)

    def __repr__(self):
        return f"<HDHomeRunTuner {self.device_id}/tuner{self.tuner_number}>"

    def command(self) -> List[str]:
        return [self.binary, self.device_id, "scan", f"/tuner{self.tuner_number}"]

    def scan(self) -> Iterator[ScanResult]:
        """Scan every channel, yielding results as channels lock.

        Raises:
            TunerError: the tuner could not be scanned
        """
        logger.debug(f"Starting scan on {self!r}")
        # only stdout is read while the scan runs; stderr is collected in a file
        with tempfile.TemporaryFile(mode="w+") as errors:
            try:
                proc = subprocess.Popen(self.command(), stdout=subprocess.PIPE, stderr=errors, text=True)
            except OSError as e:
                raise TunerError(f"Could not start scan on {self!r}: {e}")

            try:
                yield from parse_scan_output(proc.stdout)
            except GeneratorExit:
                proc.terminate()
                raise
            finally:
                proc.stdout.close()
                returncode = proc.wait()
                errors.seek(0)
                stderr = errors.read().strip()

        if returncode != 0:
            raise TunerError(f"Scan on {self!r} exited with {returncode}: {stderr[:500]}")
