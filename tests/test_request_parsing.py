from datetime import date, datetime, time
from decimal import Decimal

import pytest

from ellarises.utils.errors import ValidationError
from ellarises.utils.request_parsing import (
    MAX_DB_INT, MAX_PAGE, format_date_input, parse_date, parse_decimal, parse_donation_amount, parse_id,
    parse_int, parse_money, parse_page, parse_time, require_date, require_text,
)


@pytest.mark.parametrize('value, expected', [
    ('42', 42),
    (' 7 ', 7),
    ('-3', -3),
    ('4.5', None),
    ('abc', None),
    ('', None),
    (None, None),
])
def test_parse_int(value, expected):
    assert parse_int(value) == expected


def test_parse_int_default():
    assert parse_int('x', default=0) == 0


def test_parse_int_bounds():
    assert parse_int('11', minimum=0, maximum=10) is None
    assert parse_int('-1', minimum=0, maximum=10) is None
    assert parse_int('10', minimum=0, maximum=10) == 10
    assert parse_int('99999999999999999999', maximum=MAX_DB_INT) is None


@pytest.mark.parametrize('value, expected', [
    ('12', 12),
    ('0', None),
    (str(MAX_DB_INT), MAX_DB_INT),
    (str(MAX_DB_INT + 1), None),
    ('99999999999999999999', None),
])
def test_parse_id(value, expected):
    assert parse_id(value) == expected


@pytest.mark.parametrize('value', ['NaN', 'nan', 'inf', '-Infinity', 'twelve', ''])
def test_parse_decimal_rejects_non_finite_and_garbage(value):
    assert parse_decimal(value) is None


def test_parse_decimal_keeps_precision():
    assert parse_decimal('3.25') == Decimal('3.25')


def test_parse_money_defaults_and_rounds():
    assert parse_money('') == Decimal('0.00')
    assert parse_money('not-a-number') == Decimal('0.00')
    assert parse_money('19.999') == Decimal('20.00')
    assert parse_money('12') == Decimal('12.00')
    assert parse_money('1e30') == Decimal('0.00')
    assert parse_money('10000000000') == Decimal('0.00')
    assert parse_money('9999999999.99') == Decimal('9999999999.99')


@pytest.mark.parametrize('value', ['0', '0.00', '-5', '', None, 'NaN'])
def test_donation_amount_must_be_positive(value):
    with pytest.raises(ValidationError) as excinfo:
        parse_donation_amount(value)
    assert excinfo.value.message == 'Donation amount must be greater than $0.'


def test_donation_amount_is_quantized():
    assert parse_donation_amount('0.5') == Decimal('0.50')


@pytest.mark.parametrize('value', ['1e30', '10000000000.00', '9999999999.995'])
def test_donation_amount_must_fit_the_amount_column(value):
    with pytest.raises(ValidationError, match='Donation amount is too large.'):
        parse_donation_amount(value)


def test_parse_date():
    assert parse_date('2024-05-01') == date(2024, 5, 1)
    assert parse_date('2024-05-01T10:00:00') == date(2024, 5, 1)
    assert parse_date(datetime(2024, 5, 1, 10, 0)) == date(2024, 5, 1)
    assert parse_date('05/01/2024') is None
    assert parse_date('') is None


def test_parse_time():
    assert parse_time('09:30') == time(9, 30)
    assert parse_time('18:00:15') == time(18, 0, 15)
    assert parse_time('25:00') is None
    assert parse_time(None) is None


def test_require_date_names_the_field():
    with pytest.raises(ValidationError, match='Event date is required.'):
        require_date('', 'Event date')


def test_require_text_treats_whitespace_as_missing():
    with pytest.raises(ValidationError, match='Title needed'):
        require_text({'title': '   '}, 'title', message='Title needed')
    require_text({'title': 'Graduated'}, 'title')


@pytest.mark.parametrize('value, expected', [('3', 3), ('0', 1), ('-2', 1), ('abc', 1), (None, 1)])
def test_parse_page(value, expected):
    assert parse_page(value) == expected


def test_parse_page_caps_huge_numbers():
    assert parse_page('99999999999999999999') == MAX_PAGE


def test_format_date_input():
    assert format_date_input(date(2024, 2, 14)) == '2024-02-14'
    assert format_date_input(None) == ''
