"""Payer phone number normalisation."""

import re

from protean.exceptions import ValidationError

# Safaricom mobile ranges: 07XX and the newer 01XX
_NORMALISED = re.compile(r"^254[17]\d{8}$")


def normalize_phone_number(raw) -> str:
    """Return ``raw`` as ``254XXXXXXXXX``.

    Accepts ``07XXXXXXXX`` / ``01XXXXXXXX``, with or without the ``+254`` /
    ``254`` prefix in place of the leading zero, and optional spaces or
    dashes.
    """
    digits = re.sub(r"[\s-]", "", str(raw or ""))
    if digits.startswith("+"):
        digits = digits[1:]
    if digits.startswith("0") and len(digits) == 10:
        digits = "254" + digits[1:]

    if not _NORMALISED.match(digits):
        raise ValidationError(
            {"phone_number": ["Phone number must look like 07XXXXXXXX, 01XXXXXXXX or 254XXXXXXXXX"]}
        )
    return digits
