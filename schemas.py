"""
Marshmallow schemas for station directory payloads

Validates and normalizes JSON coming back from the directory so that the
rest of the scanner works with plain dataclasses and never with raw dicts.
"""
from marshmallow import EXCLUDE, Schema, fields, post_load, pre_load, validate

from models import DEFAULT_SCAN_INTERVAL_MINUTES, LogEntry, Station, TunerConfig

# ============================================================================
# Tuner Schemas
# ============================================================================


class TunerConfigSchema(Schema):
    """Schema for a tuner configuration returned by GET /tuners/{id}/{index}"""

    id = fields.Raw(required=True)
    tuner_id = fields.Str(required=True, validate=validate.Length(min=1))
    tuner_number = fields.Int(required=True, validate=validate.Range(min=0))
    name = fields.Str(load_default="", allow_none=True)
    latitude = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(required=True, validate=validate.Range(min=-180, max=180))
    scan_interval = fields.Int(load_default=DEFAULT_SCAN_INTERVAL_MINUTES, validate=validate.Range(min=1))

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def flatten_info(self, data, **kwargs):
        """Merge the nested ``info`` object and fix the misspelled latitude key"""
        data = dict(data)
        info = data.pop("info", None)
        if isinstance(info, dict):
            # Top-level keys win over receiver info
            data = {**info, **data}

        if "lattitude" in data:
            data["latitude"] = data.pop("lattitude")

        if data.get("scan_interval") is None:
            data.pop("scan_interval", None)
        if data.get("tuner_id") is not None:
            data["tuner_id"] = str(data["tuner_id"])
        if data.get("name") is None:
            data["name"] = ""
        return data

    @post_load
    def make_config(self, data, **kwargs):
        return TunerConfig(**data)


# ============================================================================
# Station Schemas
# ============================================================================


class StationSchema(Schema):
    """Schema for a station object inside ``{station: {...}}``"""

    id = fields.Int(load_default=None, allow_none=True)
    tsid = fields.Str(required=True)
    callsign = fields.Str(required=True)
    parent_callsign = fields.Str(load_default=None, allow_none=True)
    rf = fields.Int(required=True)
    display = fields.Int(required=True)
    latitude = fields.Float(load_default=None, allow_none=True)
    longitude = fields.Float(load_default=None, allow_none=True)
    distance = fields.Float(load_default=None, allow_none=True)

    class Meta:
        unknown = EXCLUDE

    @post_load
    def make_station(self, data, **kwargs):
        return Station(**data)


class StationEnvelopeSchema(Schema):
    """Schema for one element of the GET /stations array"""

    station = fields.Nested(StationSchema, required=True)

    class Meta:
        unknown = EXCLUDE


class StationCreateResponseSchema(Schema):
    """Schema for the POST /stations response"""

    success = fields.Bool(load_default=False)
    station = fields.Nested(StationSchema, load_default=None, allow_none=True)

    class Meta:
        unknown = EXCLUDE


# ============================================================================
# Log Schemas
# ============================================================================


class LogEntrySchema(Schema):
    """Schema for a log object inside ``{log: {...}}``"""

    id = fields.Int(load_default=None, allow_none=True)
    signal_strength = fields.Int(required=True)
    signal_to_noise = fields.Int(required=True)
    signal_quality = fields.Int(required=True)
    station_id = fields.Int(required=True)
    tuner_id = fields.Raw(required=True)
    created_at = fields.Str(load_default=None, allow_none=True)

    class Meta:
        unknown = EXCLUDE

    @post_load
    def make_log_entry(self, data, **kwargs):
        return LogEntry(**data)


class LogCreateResponseSchema(Schema):
    """Schema for the POST /logs response"""

    success = fields.Bool(load_default=False)
    log = fields.Nested(LogEntrySchema, load_default=None, allow_none=True)

    class Meta:
        unknown = EXCLUDE
