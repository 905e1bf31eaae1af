import pytest

from app.core.exceptions import InvalidAmountError, ObligationValidationError
from app.utils.money import MAX_AMOUNT_CENTS, ensure_positive, format_amount, parse_amount


class TestParseAmount:
    """Decimal input -> integer cents."""

    def test_decimal_string(self):
        assert parse_amount("12.5") == 1250
        assert parse_amount("12.50") == 1250
        assert parse_amount("100") == 10000

    def test_numbers_and_whitespace(self):
        assert parse_amount(12.5) == 1250
        assert parse_amount(7) == 700
        assert parse_amount("  3.10 ") == 310

    def test_rounds_half_up(self):
        assert parse_amount("0.125") == 13
        assert parse_amount("0.29") == 29
        assert parse_amount("19.99") == 1999

    @pytest.mark.parametrize("value", ["", "   ", "abc", "12,50", "nan", "inf", None, "1e308", "1e17", 10 ** 400])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ObligationValidationError) as exc_info:
            parse_amount(value)
        assert exc_info.value.field == "amount"

    def test_upper_bound(self):
        assert parse_amount("10000000000000") == MAX_AMOUNT_CENTS
        assert parse_amount("-10000000000000") == -MAX_AMOUNT_CENTS
        with pytest.raises(ObligationValidationError):
            parse_amount("10000000000000.01")

    def test_keeps_sign(self):
        assert parse_amount("0") == 0
        assert parse_amount("-5") == -500


class TestEnsurePositive:
    @pytest.mark.parametrize("value", ["0", "-1", "0.001"])
    def test_rejects_zero_and_negative(self, value):
        with pytest.raises(InvalidAmountError):
            ensure_positive(parse_amount(value))

    def test_accepts_smallest_unit(self):
        ensure_positive(parse_amount("0.01"))


def test_format_amount():
    assert format_amount(1250) == "12.50"
    assert format_amount(5) == "0.05"
    assert format_amount(0) == "0.00"
    assert format_amount(-300) == "-3.00"


def test_parse_then_format_keeps_cents():
    cents = parse_amount("12.5")
    assert cents == 1250
    assert format_amount(cents) == "12.50"
