"""
Unit tests for setting value encoding and validation.
"""

import pytest
from estate.models import Setting
from estate.services.settings_service import (
    get_setting_values, parse_setting_value, stringify_setting_value, validate_setting_value
)


class TestParseSettingValue:

    @pytest.mark.parametrize('raw,data_type,expected', [
        ('0.05', 'number', 0.05),
        ('7', 'number', 7),
        ('true', 'boolean', True),
        ('false', 'boolean', False),
        ('{"a": [1, 2]}', 'json', {'a': [1, 2]}),
        ('Zimunda Estate', 'string', 'Zimunda Estate'),
    ])
    def test_parse(self, raw, data_type, expected):
        assert parse_setting_value(raw, data_type) == expected

    def test_integer_number_stays_int(self):
        assert isinstance(parse_setting_value('7', 'number'), int)

    def test_broken_json_parses_to_none(self):
        assert parse_setting_value('{oops', 'json') is None

    def test_bad_number_parses_to_none(self):
        assert parse_setting_value('abc', 'number') is None


class TestStringifySettingValue:

    def test_json_is_dumped(self):
        assert stringify_setting_value({'x': 1}, 'json') == '{"x": 1}'

    def test_boolean(self):
        assert stringify_setting_value(True, 'boolean') == 'true'
        assert stringify_setting_value(False, 'boolean') == 'false'

    def test_number(self):
        assert stringify_setting_value(0.15, 'number') == '0.15'


class TestValidateSettingValue:

    def test_valid_rate(self):
        assert validate_setting_value('pricing.taxRate', '0.15', 'number', 'pricing') is None

    @pytest.mark.parametrize('key,value,data_type,category,message', [
        ('pricing.taxRate', '1.5', 'number', 'pricing', 'Rate must be a number between 0 and 1'),
        ('pricing.taxRate', 'abc', 'number', 'pricing', 'Invalid number format'),
        ('pricing.currency', 'US', 'string', 'pricing', 'Currency must be a 3-letter code'),
        ('property.defaultRating', '6', 'number', 'property', 'Rating must be a number between 0 and 5'),
        ('booking.minimumStay', '0', 'number', 'booking', 'Minimum stay must be a positive integer'),
        ('booking.minimumStay', '1.5', 'number', 'booking', 'Minimum stay must be a positive integer'),
        ('contact.email', 'not-an-email', 'string', 'contact', 'Invalid email format'),
        ('site.name', '', 'string', 'site', 'Site name is required'),
        ('feature.flags', '{bad', 'json', 'system', 'Invalid JSON format'),
        ('feature.enabled', 'yes', 'boolean', 'system', 'Boolean value must be "true" or "false"'),
    ])
    def test_invalid_values(self, key, value, data_type, category, message):
        assert validate_setting_value(key, value, data_type, category) == message

    def test_unknown_category(self):
        assert validate_setting_value('x.y', '1', 'number', 'weather') == 'Unknown category "weather"'

    def test_unknown_data_type(self):
        assert validate_setting_value('x.y', '1', 'date', 'system') == 'Unknown data type "date"'

    def test_unknown_key_only_checks_type(self):
        assert validate_setting_value('custom.anything', '123', 'number', 'system') is None

    @pytest.mark.parametrize('key,value,data_type,category,message', [
        ('pricing.currency', '123', 'number', 'pricing', 'Currency must be a 3-letter code'),
        ('pricing.taxRate', 'abc', 'string', 'pricing', 'Rate must be a number between 0 and 1'),
        ('pricing.serviceFeeRate', 'true', 'boolean', 'pricing', 'Rate must be a number between 0 and 1'),
        ('property.defaultRating', '"4"', 'json', 'property', 'Rating must be a number between 0 and 5'),
        ('booking.minimumStay', 'two', 'string', 'booking', 'Minimum stay must be a positive integer'),
        ('contact.email', '5', 'json', 'contact', 'Invalid email format'),
        ('site.logo', '42', 'number', 'site', 'Logo must be a URL'),
    ])
    def test_known_key_with_wrong_value_type(self, key, value, data_type, category, message):
        assert validate_setting_value(key, value, data_type, category) == message

    def test_valid_email(self):
        assert validate_setting_value('contact.email', 'info@zimunda.com', 'string', 'contact') is None


class TestGetSettingValues:

    def test_values_are_parsed(self, session):
        session.add_all([
            Setting(key='booking.minimumStay', value='2', data_type='number', category='booking'),
            Setting(key='site.name', value='Zimunda Estate', data_type='string', category='site'),
        ])
        session.commit()

        assert get_setting_values(session, ['booking.minimumStay', 'site.name', 'missing.key']) == {
            'booking.minimumStay': 2,
            'site.name': 'Zimunda Estate',
        }

    def test_unparsable_value_is_left_out(self, session):
        session.add(Setting(key='booking.minimumStay', value='two', data_type='number', category='booking'))
        session.commit()

        assert get_setting_values(session, ['booking.minimumStay']) == {}
