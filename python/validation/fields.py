"""
Field Validators

Regex and parsing based checks for single form fields.
"""

import re
from urllib.parse import urlparse

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-().]")
VAT_PATTERN = re.compile(r"^[A-Z]{0,4}[0-9A-Z\-\s]{4,20}$", re.IGNORECASE)
HOSTNAME_PATTERN = re.compile(
    r"^(localhost|(\d{1,3}\.){3}\d{1,3}|([a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?\.)+[a-z]{2,})$",
    re.IGNORECASE,
)

# Payment terms offered in vendor forms (days)
STANDARD_PAYMENT_TERMS = (7, 14, 15, 30, 45, 60, 90)
MAX_PAYMENT_TERMS_DAYS = 365
DEFAULT_CUSTOM_PAYMENT_TERMS = 30

MAX_TEXT_LOGO_LENGTH = 3


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_phone(phone: str) -> bool:
    """Check a phone number in common international formats.

    Spaces, dashes, dots and parentheses are ignored; the remainder must be
    an optional leading + followed by 7-16 digits not starting with 0.
    """
    clean = PHONE_STRIP_PATTERN.sub("", phone.strip())
    return bool(PHONE_PATTERN.match(clean)) and len(clean) >= 7


def normalize_website_url(url: str) -> str:
    """Prefix https:// when the URL has no scheme."""
    url = url.strip()
    if not url:
        return url
    return url if url.startswith(("http://", "https://")) else f"https://{url}"


def is_valid_url(url: str) -> bool:
    """Check a website URL, with or without scheme."""
    if not url.strip():
        return False

    parsed = urlparse(normalize_website_url(url))
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False

    return bool(HOSTNAME_PATTERN.match(parsed.hostname))


def is_valid_vat_number(vat_number: str) -> bool:
    return bool(VAT_PATTERN.match(vat_number.strip()))


def parse_payment_terms(value: str | int | None, custom_value: str | int | None = None) -> int:
    """Parse vendor payment terms into days.

    Args:
        value: One of the standard terms, a number of days, or "custom"
        custom_value: Days used when value is "custom" (defaults to 30)

    Returns:
        Payment terms in days

    Raises:
        ValueError: If the terms are not a whole number between 0 and 365
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("Payment terms are required")

    if isinstance(value, str) and value.strip().lower() == "custom":
        if custom_value is None or (isinstance(custom_value, str) and not custom_value.strip()):
            value = DEFAULT_CUSTOM_PAYMENT_TERMS
        else:
            value = custom_value

    if isinstance(value, bool):
        raise ValueError("Payment terms must be a number of days")

    try:
        days = int(str(value).strip())
    except ValueError:
        raise ValueError(f"Payment terms must be a number of days, got {value!r}")

    if days < 0 or days > MAX_PAYMENT_TERMS_DAYS:
        raise ValueError(f"Payment terms must be between 0 and {MAX_PAYMENT_TERMS_DAYS} days")

    return days


def is_image_logo(logo: str) -> bool:
    """Check whether a logo string is an image reference rather than text."""
    logo = logo.strip()
    return logo.startswith(("data:image/", "http://", "https://", "/"))


def generate_text_logo(trading_name: str) -> str:
    """Build initials from a trading name, e.g. "Acme Widgets Ltd" -> "AW"."""
    words = [w for w in re.split(r"[\s\-_]+", trading_name.strip()) if w]
    initials = "".join(w[0] for w in words[:2] if w[0].isalnum())
    return initials.upper() or "?"


def validate_logo(logo: str | None, trading_name: str) -> str:
    """Return a usable logo string.

    Image references pass through; short text logos (up to three characters)
    are upper-cased; anything else is replaced by the trading name initials.
    """
    logo = (logo or "").strip()

    if not logo:
        return generate_text_logo(trading_name)

    if is_image_logo(logo):
        return logo

    if len(logo) <= MAX_TEXT_LOGO_LENGTH and not any(c.isspace() for c in logo):
        return logo.upper()

    return generate_text_logo(trading_name)
