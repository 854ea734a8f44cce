"""
Validation Module Tests

Tests for field validators and the company, client and vendor forms.
"""

from datetime import date, timedelta
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from validation import (
    generate_text_logo,
    is_valid_email,
    is_valid_phone,
    is_valid_url,
    is_valid_vat_number,
    normalize_website_url,
    parse_payment_terms,
    validate_client_form,
    validate_company_form,
    validate_logo,
    validate_vendor_form,
)


class TestFieldValidators:
    """Tests for single-field validators."""

    @pytest.mark.parametrize("email", ["a@b.co", "first.last@company.example"])
    def test_valid_emails(self, email):
        assert is_valid_email(email) is True

    @pytest.mark.parametrize("email", ["", "plain", "a@b", "a b@c.de", "@c.de"])
    def test_invalid_emails(self, email):
        assert is_valid_email(email) is False

    def test_phone_formatting_is_ignored(self):
        """Test spaces, dashes and brackets are stripped before matching."""
        assert is_valid_phone("+372 (555) 123-45") is True

    @pytest.mark.parametrize("phone", ["123", "0123456789", "+", "phone"])
    def test_invalid_phones(self, phone):
        assert is_valid_phone(phone) is False

    def test_url_scheme_added(self):
        assert normalize_website_url("example.com") == "https://example.com"
        assert normalize_website_url("http://example.com") == "http://example.com"

    def test_urls(self):
        assert is_valid_url("example.com") is True
        assert is_valid_url("https://sub.example.co.uk/path") is True
        assert is_valid_url("ftp://example.com") is False
        assert is_valid_url("not a url") is False

    def test_vat_numbers(self):
        assert is_valid_vat_number("EE123456789") is True
        assert is_valid_vat_number("12") is False


class TestPaymentTerms:
    """Tests for parse_payment_terms."""

    def test_standard_terms(self):
        assert parse_payment_terms("30") == 30
        assert parse_payment_terms(45) == 45

    def test_custom_terms(self):
        assert parse_payment_terms("custom", "21") == 21

    def test_custom_without_value_defaults_to_30(self):
        assert parse_payment_terms("custom") == 30

    @pytest.mark.parametrize("value", [None, "", "abc", -1, 366, True])
    def test_invalid_terms(self, value):
        with pytest.raises(ValueError):
            parse_payment_terms(value)


class TestLogo:
    """Tests for logo helpers."""

    def test_initials(self):
        assert generate_text_logo("acme widgets ltd") == "AW"
        assert generate_text_logo("") == "?"

    def test_empty_logo_uses_initials(self):
        assert validate_logo("", "Northwind Traders") == "NT"

    def test_image_logo_kept(self):
        assert validate_logo("https://cdn.example/logo.png", "X") == "https://cdn.example/logo.png"
        assert validate_logo("data:image/png;base64,AAA", "X") == "data:image/png;base64,AAA"

    def test_short_text_logo_upper_cased(self):
        assert validate_logo("nw", "Northwind") == "NW"

    def test_long_text_logo_replaced(self):
        assert validate_logo("Northwind Logo", "Northwind Traders") == "NT"


class TestCompanyForm:
    """Tests for validate_company_form."""

    @pytest.fixture
    def form(self) -> dict:
        return {
            "legal_name": "Northwind Trading Ltd",
            "trading_name": "Northwind",
            "registration_no": "REG-1",
            "registration_date": "2020-01-01",
            "country_of_registration": "Estonia",
            "base_currency": "EUR",
            "email": "office@northwind.example",
        }

    def test_valid(self, form):
        result = validate_company_form(form)
        assert result.is_valid
        assert result.errors == []

    def test_missing_fields(self):
        result = validate_company_form({})
        assert not result.is_valid
        assert "legal_name" in result.field_errors
        assert "registration_date" in result.field_errors

    def test_future_registration_date(self, form):
        form["registration_date"] = (date.today() + timedelta(days=1)).isoformat()
        result = validate_company_form(form)
        assert result.field_errors["registration_date"] == ["Registration Date cannot be in the future"]

    def test_soft_checks_are_warnings(self, form):
        form.update(website="not a url", phone="12", vat_number="?")
        result = validate_company_form(form)
        assert result.is_valid
        assert len(result.warnings) == 3

    def test_invalid_status(self, form):
        form["status"] = "Dormant"
        assert not validate_company_form(form).is_valid

    def test_partial_checks_only_given_fields(self):
        assert validate_company_form({"industry": "Retail"}, partial=True).is_valid
        assert not validate_company_form({"email": "bad"}, partial=True).is_valid


class TestClientForm:
    """Tests for validate_client_form."""

    def test_legal_entity_requirements(self):
        result = validate_client_form({
            "name": "Contoso", "email": "a@contoso.example", "client_type": "LEGAL_ENTITY",
        })
        assert "Contact person name is required for legal entities" in result.errors
        assert "Registration number is required for legal entities" in result.errors

    def test_individual_requires_passport(self):
        result = validate_client_form({
            "name": "Jane", "email": "jane@example.com", "client_type": "INDIVIDUAL",
        })
        assert result.errors == ["Passport number is required for individuals"]

    def test_age_bounds(self):
        too_young = date.today().replace(year=date.today().year - 10, day=1)
        result = validate_client_form({
            "name": "Kid", "email": "kid@example.com", "date_of_birth": too_young.isoformat(),
        })
        assert "date_of_birth" in result.field_errors

    def test_invalid_status(self):
        result = validate_client_form({"name": "A", "email": "a@b.co", "status": "GONE"})
        assert "status" in result.field_errors


class TestVendorForm:
    """Tests for validate_vendor_form."""

    def test_valid(self):
        result = validate_vendor_form({
            "company_name": "Supplies Inc",
            "contact_email": "sales@supplies.example",
            "payment_terms": "custom",
            "custom_payment_terms": "10",
        })
        assert result.is_valid

    def test_bad_terms(self):
        result = validate_vendor_form({
            "company_name": "Supplies Inc",
            "contact_email": "sales@supplies.example",
            "payment_terms": "400",
        })
        assert "payment_terms" in result.field_errors
