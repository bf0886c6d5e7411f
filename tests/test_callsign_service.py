"""
Tests for callsign resolution
"""
from unittest.mock import MagicMock

import pytest
import requests

from error_handling import LookupServiceError
from models import CallsignLookupRow, Skip
from services.callsign_service import (
    SKIP_INVALID_TSID,
    SKIP_TRANSLATOR,
    SKIP_UNKNOWN_TSID,
    CallsignResolver,
    RabbitEarsTsidLookup,
    callsign_from_name,
    parse_tsid_table,
)
from conftest import make_result

SAMPLE_TSID_TABLE = """<table>
<tr><th>TSID</th><th>Callsign</th><th>Virtual</th><th>RF</th></tr>
<tr><td>0x0817&nbsp;</td><td><a href='/market.php?request=station_search&callsign=1328'>WABC-TV</a>&nbsp;</td><td align='right'>7&nbsp;</td><td align='right'>7</td></tr>
<tr><td>0x0819&nbsp;</td><td><a href="/market.php?request=station_search&callsign=47535">WNBC</a>&nbsp;</td><td align='right'>4&nbsp;&nbsp;</td><td align='right'>28</td></tr>
<tr><td>0x1a2b&nbsp;</td><td><a href='/market.php?request=station_search&callsign=9999'>W45AB-DT</a>&nbsp;</td><td align='right'>45&nbsp;</td><td align='right'>45</td></tr>
</table>"""


class TestCallsignFromName:
    """Tests for deriving callsigns from PSIP names"""

    def test_strips_digital_suffix(self):
        assert callsign_from_name("WABCDT") == "WABC"
        assert callsign_from_name("KQEDDT") == "KQED"

    def test_hyphenated_suffix_uses_callsign_prefix(self):
        assert callsign_from_name("WABC-DT") == "WABC"
        assert callsign_from_name("KOVR-HD") == "KOVR"

    def test_short_names_keep_suffix_rule_off(self):
        """Four characters is never treated as callsign + DT"""
        assert callsign_from_name("KSDT") == "KSDT"

    def test_canadian_callsign(self):
        assert callsign_from_name("CBLT") == "CBLT"

    def test_low_power_callsign(self):
        assert callsign_from_name("W45AB") == "W45AB"
        assert callsign_from_name("K7XY") == "K7XY"

    def test_three_letter_callsign(self):
        assert callsign_from_name("WGN") == "WGN"

    def test_branding_is_not_a_callsign(self):
        assert callsign_from_name("ABC7") is None
        assert callsign_from_name("ION") is None
        assert callsign_from_name("") is None


class TestParseTsidTable:
    """Tests for parsing the tsid table HTML"""

    def test_finds_row(self):
        row = parse_tsid_table(SAMPLE_TSID_TABLE, "0x0817")
        assert row == CallsignLookupRow(tsid="0x0817", callsign="WABC", display=7, rf=7)

    def test_double_quoted_link_and_padding(self):
        row = parse_tsid_table(SAMPLE_TSID_TABLE, "0x0819")
        assert row.callsign == "WNBC"
        assert row.display == 4
        assert row.rf == 28

    def test_low_power_row(self):
        row = parse_tsid_table(SAMPLE_TSID_TABLE, "0x1a2b")
        assert row.callsign == "W45AB"

    def test_missing_tsid(self):
        assert parse_tsid_table(SAMPLE_TSID_TABLE, "0x9999") is None


class TestRabbitEarsTsidLookup:
    """Tests for the tsid table HTTP lookup"""

    def test_find_fetches_and_parses(self):
        session = MagicMock()
        session.get.return_value.text = SAMPLE_TSID_TABLE
        lookup = RabbitEarsTsidLookup("http://example.test/tsid", session=session)

        row = lookup.find("0x0817")

        assert row.callsign == "WABC"
        session.get.assert_called_once_with("http://example.test/tsid", timeout=30)

    def test_http_failure_raises_lookup_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        lookup = RabbitEarsTsidLookup(session=session)

        with pytest.raises(LookupServiceError):
            lookup.find("0x0817")


class TestCallsignResolver:
    """Tests for CallsignResolver"""

    def test_null_tsid_skips_without_lookup(self, caplog):
        lookup = MagicMock()
        resolver = CallsignResolver(lookup)

        outcome = resolver.resolve(make_result(tsid="0x0001", name="WABC-DT"))

        assert outcome == Skip(SKIP_INVALID_TSID)
        lookup.find.assert_not_called()
        assert "SER: 100" in caplog.text

    def test_name_match_skips_lookup(self):
        lookup = MagicMock()
        resolver = CallsignResolver(lookup)

        assert resolver.resolve(make_result(name="WABC-DT")) == "WABC"
        lookup.find.assert_not_called()

    def test_lookup_used_for_branded_name(self):
        lookup = MagicMock()
        lookup.find.return_value = CallsignLookupRow(tsid="0x0817", callsign="WABC", display=7, rf=7)
        resolver = CallsignResolver(lookup)

        assert resolver.resolve(make_result(tsid="0x0817", name="ABC7", major=7, channel="7")) == "WABC"
        lookup.find.assert_called_once_with("0x0817")

    def test_unknown_tsid(self, caplog):
        lookup = MagicMock()
        lookup.find.return_value = None
        resolver = CallsignResolver(lookup)

        outcome = resolver.resolve(make_result(tsid="0x0abc", name="ABC7"))

        assert outcome == Skip(SKIP_UNKNOWN_TSID)
        assert "0x0abc" in caplog.text

    def test_translator_on_other_rf_channel(self, caplog):
        lookup = MagicMock()
        lookup.find.return_value = CallsignLookupRow(tsid="0x0817", callsign="WABC", display=7, rf=7)
        resolver = CallsignResolver(lookup)

        outcome = resolver.resolve(make_result(tsid="0x0817", name="ABC7", major=7, channel="32"))

        assert outcome == Skip(SKIP_TRANSLATOR)
        assert "translator of WABC" in caplog.text
        assert "Signal: 80, SNR: 60, SER: 100" in caplog.text

    def test_translator_on_other_display_channel(self):
        lookup = MagicMock()
        lookup.find.return_value = CallsignLookupRow(tsid="0x0817", callsign="WABC", display=7, rf=7)
        resolver = CallsignResolver(lookup)

        outcome = resolver.resolve(make_result(tsid="0x0817", name="ABC7", major=8, channel="7"))

        assert outcome == Skip(SKIP_TRANSLATOR)

    def test_check_tsid_passes_normal_tsid(self):
        resolver = CallsignResolver(MagicMock())
        assert resolver.check_tsid(make_result(tsid="0x0817")) is None
