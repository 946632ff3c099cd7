import re

from ...exceptions import InvalidPhoneFormat

DEFAULT_COUNTRY_CODE = "91"
MOBILE_LEADING_DIGITS = "6789"
NATIONAL_NUMBER_LENGTH = 10

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Canonicalize a user-supplied mobile number to ``+<country_code><10 digits>``.

    Accepted shapes, after stripping every non-digit character:

    * ten digits starting with 6-9 (``98765 43210``)
    * the country code followed by ten such digits (``919876543210``,
      ``+91 98765-43210``)

    Anything else raises ``InvalidPhoneFormat``. Already canonical input is
    returned unchanged.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidPhoneFormat()

    digits = _NON_DIGITS.sub("", raw)

    if len(digits) == NATIONAL_NUMBER_LENGTH and digits[0] in MOBILE_LEADING_DIGITS:
        return f"+{country_code}{digits}"

    prefixed_length = len(country_code) + NATIONAL_NUMBER_LENGTH
    if (
        len(digits) == prefixed_length
        and digits.startswith(country_code)
        and digits[len(country_code)] in MOBILE_LEADING_DIGITS
    ):
        # covers both "91XXXXXXXXXX" and "+91 XXXXX XXXXX"
        return f"+{digits}"

    raise InvalidPhoneFormat()


def is_canonical_phone(value: str, country_code: str = DEFAULT_COUNTRY_CODE) -> bool:
    try:
        return normalize_phone(value, country_code) == value
    except InvalidPhoneFormat:
        return False
