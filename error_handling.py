"""
Standardized error handling for the scanner

Provides:
- Exception classes for transient I/O and fatal failures
- Error handler decorator for worker loop boundaries
- Diagnostic logging for skipped scan results (never escalated)
"""
import logging
from functools import wraps

logger = logging.getLogger(__name__)


# ============================================================================
# Specific Error Classes (for raising)
# ============================================================================


class ScannerError(Exception):
    """Base exception for scanner failures"""

    def __init__(self, message: str, status_code=None, response=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class DirectoryError(ScannerError):
    """Raise when a station directory call fails (non-2xx, timeout, bad JSON)"""

    pass


class LookupServiceError(ScannerError):
    """Raise when an external callsign or license lookup is unavailable"""

    pass


class TunerError(ScannerError):
    """Raise when the tuner hardware or its driver cannot be used"""

    pass


# ============================================================================
# Error Handler Decorator
# ============================================================================


def handle_errors(default_message="An error occurred", log_errors=True, default=None):
    """
    Decorator to contain exceptions at a loop boundary

    Usage:
        @handle_errors(default_message="Scan failed")
        def run_once(self):
            # Any exception is logged and the default value is returned

    Args:
        default_message: Prefix for the logged message
        log_errors: If True, logs errors to logger
        default: Value returned when an exception was caught

    Returns:
        Decorated function that never propagates exceptions
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except TunerError as e:
                if log_errors:
                    logger.warning(f"{default_message} in {f.__name__}: tuner error: {e}")
                return default
            except ScannerError as e:
                if log_errors:
                    logger.warning(f"{default_message} in {f.__name__}: {e}")
                return default
            except Exception:
                if log_errors:
                    logger.error(f"{default_message}: unexpected error in {f.__name__}", exc_info=True)
                return default

        return wrapper

    return decorator


# ============================================================================
# Skip Diagnostics
# ============================================================================


def format_signal(status) -> str:
    """Render raw signal metrics the way operators read them"""
    if status is None:
        return "Signal: unknown"
    return f"Signal: {status.signal_strength}, SNR: {status.signal_to_noise}, SER: {status.symbol_error_rate}"


def log_skip(reason: str, result, detail: str = "", scan_time=None):
    """
    Log a skipped scan result with enough context for manual reconciliation

    Args:
        reason: Short triggering reason (e.g. "unknown transport-stream id")
        result: The ScanResult being skipped
        detail: Optional longer explanation for the operator
        scan_time: Timestamp string of the scan pass
    """
    program = result.primary_program
    name = program.name if program else "?"
    major = program.major if program else "?"
    when = f" at {scan_time}" if scan_time else ""

    logger.warning(
        f"Skipping tsid {result.tsid} on rf channel {result.channel}, display channel {major}, "
        f"station IDs as {name}{when}: {reason}"
    )
    if detail:
        logger.warning(detail)
    logger.warning(format_signal(result.status))
