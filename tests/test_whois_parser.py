"""
Tests for WHOIS response normalization and expiry date extraction.
"""

from datetime import date, datetime
from unittest.mock import Mock, patch

import pytest
from hypothesis import given, strategies as st

from domain_monitor.checkers.whois_parser import (
    EXPIRY_STRATEGIES,
    WhoisDocument,
    clean_date_string,
    coerce_date,
    days_until_expiry,
    decode_response,
    extract_expiry_date,
    from_alternate_fields,
    from_parser_field,
    from_text_patterns,
    parse_date_string,
)


COM_RESPONSE = """   Domain Name: EXAMPLE.COM
   Registry Domain ID: 2336799_DOMAIN_COM-VRSN
   Registrar WHOIS Server: whois.iana.org
   Updated Date: 2024-08-14T07:01:34Z
   Creation Date: 1995-08-14T04:00:00Z
   Registry Expiry Date: 2025-08-13T04:00:00Z
   Registrar: RESERVED-Internet Assigned Numbers Authority
"""


class TestDecodeResponse:
    """Tests for decode_response function."""

    def test_utf8(self):
        """Test that UTF-8 is tried first."""
        assert decode_response('Expiry Date: 2025-01-01 ✓'.encode('utf-8')) == 'Expiry Date: 2025-01-01 ✓'

    def test_gb18030(self):
        """Test that Chinese registry output in GB18030 is decoded."""
        text = '到期时间: 2026-05-01'

        assert decode_response(text.encode('gb18030')) == text

    def test_undecodable_bytes_are_replaced(self):
        """Test the replacement fallback when no candidate validates."""
        result = decode_response(b'Expiry Date: 2025-01-01 \xff\xff')

        assert result.startswith('Expiry Date: 2025-01-01')
        assert '�' in result

    @given(st.binary(max_size=200))
    def test_never_raises(self, raw):
        """Test that any byte sequence decodes to text."""
        assert isinstance(decode_response(raw), str)


class TestParseDateString:
    """Tests for free-text date parsing."""

    @pytest.mark.parametrize('value,expected', [
        ('2025-08-13', date(2025, 8, 13)),
        ('2025-08-13T04:00:00Z', date(2025, 8, 13)),
        ('2025-08-13T04:00:00.000Z', date(2025, 8, 13)),
        ('2025-08-13T04:00:00+08:00', date(2025, 8, 13)),
        ('2025-08-13 04:00:00 CST', date(2025, 8, 13)),
        ('2025/08/13', date(2025, 8, 13)),
        ('13-Aug-2025', date(2025, 8, 13)),
        ('13.08.2025', date(2025, 8, 13)),
        ('2025. 08. 13.', date(2025, 8, 13)),
        ('2025年08月13日', date(2025, 8, 13)),
        ('August 13, 2025', date(2025, 8, 13)),
        ('2025-08-13 (renewal pending)', date(2025, 8, 13)),
        ('Wed Aug 13 04:00:00 2025', date(2025, 8, 13)),
    ])
    def test_known_formats(self, value, expected):
        """Test explicit formats and the dateutil fallback."""
        assert parse_date_string(value) == expected

    @pytest.mark.parametrize('value', ['', '   ', 'n/a', 'never', '(none)'])
    def test_not_a_date(self, value):
        """Test that non-dates return None."""
        assert parse_date_string(value) is None

    def test_requires_four_digit_year_for_fallback(self):
        """Test that bare numbers are not turned into dates."""
        assert parse_date_string('12') is None

    def test_clean_date_string(self):
        """Test removal of remarks, fractions and timezone names."""
        assert clean_date_string('2025-08-13 04:00:00.123 (UTC) UTC') == '2025-08-13 04:00:00'


class TestCoerceDate:
    """Tests for coerce_date function."""

    def test_datetime(self):
        assert coerce_date(datetime(2025, 1, 2, 3, 4)) == date(2025, 1, 2)

    def test_date(self):
        assert coerce_date(date(2025, 1, 2)) == date(2025, 1, 2)

    def test_list_uses_first_usable_value(self):
        """Test that python-whois lists yield their first date."""
        assert coerce_date([None, 'garbage', datetime(2026, 3, 1), datetime(2027, 3, 1)]) == date(2026, 3, 1)

    def test_string(self):
        assert coerce_date('2025-01-02') == date(2025, 1, 2)

    def test_unsupported(self):
        assert coerce_date(None) is None
        assert coerce_date(12345) is None


class TestStrategies:
    """Tests for each extraction strategy in isolation."""

    def test_parser_field(self):
        """Test the expiration_date field of the grammar parse."""
        with patch('domain_monitor.checkers.whois_parser.WhoisEntry.load',
                   return_value={'expiration_date': datetime(2030, 1, 15)}):
            document = WhoisDocument('example.com', 'irrelevant')

            assert from_parser_field(document) == date(2030, 1, 15)

    def test_parser_field_missing(self):
        """Test that a parse without expiration_date yields None."""
        with patch('domain_monitor.checkers.whois_parser.WhoisEntry.load',
                   return_value={'registrar': 'Example'}):
            document = WhoisDocument('example.com', 'irrelevant')

            assert from_parser_field(document) is None

    def test_parser_failure_yields_none(self):
        """Test that a python-whois exception does not escape."""
        with patch('domain_monitor.checkers.whois_parser.WhoisEntry.load',
                   side_effect=Exception("No match for domain")):
            document = WhoisDocument('example.com', 'No match for "EXAMPLE.COM".')

            assert document.entry is None
            assert from_parser_field(document) is None
            assert from_alternate_fields(document) is None

    def test_entry_is_parsed_once(self):
        """Test that the grammar parse is cached on the document."""
        with patch('domain_monitor.checkers.whois_parser.WhoisEntry.load', return_value={}) as load:
            document = WhoisDocument('example.com', 'text')
            from_parser_field(document)
            from_alternate_fields(document)

        load.assert_called_once_with('example.com', 'text')

    @pytest.mark.parametrize('field_name', ['expiry_date', 'paid_till', 'registry_expiry_date'])
    def test_alternate_fields(self, field_name):
        """Test registrar-specific field names."""
        with patch('domain_monitor.checkers.whois_parser.WhoisEntry.load',
                   return_value={field_name: '2029-12-31'}):
            document = WhoisDocument('example.ru', 'irrelevant')

            assert from_alternate_fields(document) == date(2029, 12, 31)

    @pytest.mark.parametrize('text,expected', [
        ('Registry Expiry Date: 2025-08-13T04:00:00Z', date(2025, 8, 13)),
        ('Registrar Registration Expiration Date: 2026-02-01T00:00:00.000Z', date(2026, 2, 1)),
        ('Expiration Date: 13-Aug-2025', date(2025, 8, 13)),
        ('Expiry date:   2025-08-13', date(2025, 8, 13)),
        ('Renewal date: 2027-01-05', date(2027, 1, 5)),
        ('paid-till: 2025-12-01T21:00:00Z', date(2025, 12, 1)),
        ('Valid Until: 2025-10-10', date(2025, 10, 10)),
        ('Expires On: 2028-04-04', date(2028, 4, 4)),
        ('到期时间：2026-05-01 12:00:00', date(2026, 5, 1)),
        ('過期時間: 2026-06-01', date(2026, 6, 1)),
        ('[有効期限]                      2027/03/31', date(2027, 3, 31)),
        ('Ablaufdatum: 01.09.2025', date(2025, 9, 1)),
        ("Date d'expiration: 2025-07-07", date(2025, 7, 7)),
    ])
    def test_text_patterns(self, text, expected):
        """Test label regexes, including localized labels."""
        document = WhoisDocument('example.test', f"Domain: example.test\n{text}\nStatus: active\n")

        assert from_text_patterns(document) == expected

    def test_text_patterns_skip_unparseable_values(self):
        """Test that a label with a non-date value does not stop the scan."""
        text = "Registry Expiry Date: unknown\nExpiration Date: 2025-08-13\n"

        assert from_text_patterns(WhoisDocument('example.com', text)) == date(2025, 8, 13)

    def test_text_patterns_no_label(self):
        """Test that text without expiry labels yields None."""
        document = WhoisDocument('example.com', 'Creation Date: 2020-01-01\nUpdated Date: 2024-01-01\n')

        assert from_text_patterns(document) is None

    def test_default_strategy_order(self):
        """Test the order of the built-in strategies."""
        assert [name for name, _ in EXPIRY_STRATEGIES] == ['parser', 'alternate_fields', 'text_patterns']


class TestExtractExpiryDate:
    """Tests for extract_expiry_date function."""

    def test_first_non_empty_strategy_wins(self):
        """Test that later strategies are not consulted after a hit."""
        first = Mock(return_value=None)
        second = Mock(return_value=date(2025, 1, 1))
        third = Mock(return_value=date(2099, 1, 1))

        result = extract_expiry_date('example.com', 'text', [
            ('first', first),
            ('second', second),
            ('third', third),
        ])

        assert result == date(2025, 1, 1)
        first.assert_called_once()
        second.assert_called_once()
        third.assert_not_called()

    def test_failing_strategy_is_skipped(self):
        """Test that a strategy raising does not abort extraction."""
        result = extract_expiry_date('example.com', 'text', [
            ('broken', Mock(side_effect=ValueError("bad"))),
            ('working', Mock(return_value=date(2025, 1, 1))),
        ])

        assert result == date(2025, 1, 1)

    def test_all_strategies_empty(self):
        """Test that None is returned when nothing matches."""
        assert extract_expiry_date('example.com', 'text', [('none', Mock(return_value=None))]) is None

    def test_registry_response(self):
        """Test the default strategies on a registry response."""
        assert extract_expiry_date('example.com', COM_RESPONSE) == date(2025, 8, 13)

    def test_response_without_expiry(self):
        """Test the default strategies on a response with no expiry date."""
        text = "% This query returned 0 objects.\n"

        assert extract_expiry_date('example.invalid', text) is None


class TestDaysUntilExpiry:
    """Tests for days_until_expiry function."""

    def test_future_date(self):
        assert days_until_expiry(date(2025, 1, 11), today=date(2025, 1, 1)) == 10

    def test_expired_date_is_negative(self):
        """Test that expired domains are not clamped to zero."""
        assert days_until_expiry(date(2024, 12, 22), today=date(2025, 1, 1)) == -10

    def test_same_day(self):
        assert days_until_expiry(date(2025, 1, 1), today=date(2025, 1, 1)) == 0

    @given(st.dates(), st.integers(min_value=-5000, max_value=5000))
    def test_matches_day_offset(self, today, offset):
        """Test that the result is the day offset between the dates."""
        try:
            expiry = date.fromordinal(today.toordinal() + offset)
        except ValueError:
            return
        assert days_until_expiry(expiry, today=today) == offset
