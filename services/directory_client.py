"""
Station Directory API Client

The directory is the remote service that owns stations, tuners and signal
logs. The scanner only reads tuner configuration and stations and creates
stations and logs:

- GET  /tuners/{device_id}/{channel_index}
- GET  /stations?tsid=...&display=...&rf=...
- POST /stations   {"station": {...}}
- POST /logs       {"log": {...}}

All calls use HTTP basic auth. Any transport failure, non-2xx status or
malformed body raises DirectoryError so the caller can skip just that call.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests
from marshmallow import ValidationError
from requests.auth import HTTPBasicAuth

from error_handling import DirectoryError
from models import LogEntry, Station, TunerConfig
from schemas import (
    LogCreateResponseSchema,
    StationCreateResponseSchema,
    StationEnvelopeSchema,
    TunerConfigSchema,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

CLIENT_NAME = "ota-station-scanner"
CLIENT_VERSION = "1.0"
USER_AGENT = f"{CLIENT_NAME}/{CLIENT_VERSION}"


class StationDirectoryClient:
    """
    Client for the station directory API.

    Each tuner worker owns its own client (and therefore its own session).

    Usage:
        client = StationDirectoryClient("http://directory.local", "user", "pass")
        config = client.get_tuner_config("1010CC54", 0)
        stations = client.find_stations("0x0817", 7, "7")
    """

    def __init__(self, base_url: str, username: str, password: str, timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = HTTPBasicAuth(username, password)
        self.session.headers.update(
            {
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make a directory API request and return the decoded JSON body.

        Args:
            method: HTTP method (GET or POST)
            endpoint: Path below the base URL, starting with "/"
            params: Query string parameters
            data: JSON request body

        Returns:
            Decoded JSON (dict or list)
        """
        url = f"{self.base_url}{endpoint}"

        try:
            if method == "GET":
                response = self.session.get(url, params=params, timeout=self.timeout)
            elif method == "POST":
                response = self.session.post(url, json=data, timeout=self.timeout)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Directory request {method} {endpoint} failed with HTTP {status}")
            raise DirectoryError(f"{method} {endpoint} returned HTTP {status}", status_code=status)
        except requests.RequestException as e:
            logger.error(f"Directory request {method} {endpoint} failed: {e}")
            raise DirectoryError(f"{method} {endpoint} failed: {e}")

        try:
            return response.json()
        except ValueError:
            raise DirectoryError(
                f"Invalid JSON response from {endpoint} (HTTP {response.status_code})",
                status_code=response.status_code,
            )

    def get_tuner_config(self, device_id: str, channel_index: int, default_scan_interval: Optional[int] = None) -> TunerConfig:
        """Load the configuration for one channel of a physical tuner"""
        result = self._make_request("GET", f"/tuners/{device_id}/{channel_index}")
        if not isinstance(result, dict):
            raise DirectoryError(f"Unexpected tuner config for {device_id}/{channel_index}: {type(result).__name__}")

        result.setdefault("tuner_id", device_id)
        result.setdefault("tuner_number", channel_index)
        if default_scan_interval and result.get("scan_interval") is None:
            result["scan_interval"] = default_scan_interval

        try:
            return TunerConfigSchema().load(result)
        except ValidationError as e:
            raise DirectoryError(f"Invalid tuner config for {device_id}/{channel_index}: {e.messages}", response=result)

    def find_stations(self, tsid: str, display: int, rf) -> List[Station]:
        """Find stations matching a transport-stream id and display channel"""
        result = self._make_request("GET", "/stations", params={"tsid": tsid, "display": display, "rf": rf})
        if not isinstance(result, list):
            raise DirectoryError(f"Unexpected station search response: {type(result).__name__}", response=result)

        try:
            envelopes = StationEnvelopeSchema(many=True).load(result)
        except ValidationError as e:
            raise DirectoryError(f"Invalid station search response: {e.messages}", response=result)

        return [envelope["station"] for envelope in envelopes]

    def create_station(self, station: Station) -> Tuple[bool, Optional[Station]]:
        """Create a station.

        Returns:
            (success, station) where station is the directory's copy when
            success is True
        """
        result = self._make_request("POST", "/stations", data={"station": station.to_payload()})
        try:
            parsed = StationCreateResponseSchema().load(result)
        except ValidationError as e:
            raise DirectoryError(f"Invalid station create response: {e.messages}", response=result)

        return parsed["success"], parsed["station"]

    def create_log(self, entry: LogEntry) -> Tuple[bool, Optional[LogEntry]]:
        """Create a signal log entry.

        Returns:
            (success, log entry) where the entry is the directory's copy when
            success is True
        """
        result = self._make_request("POST", "/logs", data={"log": entry.to_payload()})
        try:
            parsed = LogCreateResponseSchema().load(result)
        except ValidationError as e:
            raise DirectoryError(f"Invalid log create response: {e.messages}", response=result)

        return parsed["success"], parsed["log"]
