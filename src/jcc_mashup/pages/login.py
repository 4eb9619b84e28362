"""Login page - extracts the anti-forgery token from the Daxko login form.

The form at /online/<site>/Security/login.mvc/log_in carries:
  <input name="__RequestVerificationToken" type="hidden" value="...">
The value must be echoed back in the login POST.
"""

import re

from src.jcc_mashup.logging import get_logger

log = get_logger(__name__)

VERIFICATION_FIELD = "__RequestVerificationToken"

_TOKEN_PATTERNS = (
    # name before value (what the portal renders today)
    re.compile(
        r'name="' + re.escape(VERIFICATION_FIELD) + r'"[^>]+value="([^"]+)"'
    ),
    # value before name
    re.compile(
        r'value="([^"]+)"[^>]+name="' + re.escape(VERIFICATION_FIELD) + r'"'
    ),
)


def extract_verification_token(html: str | None) -> str | None:
    """Find the hidden __RequestVerificationToken value in a login page.

    Args:
        html: Login page markup.

    Returns:
        The token value, or None when the field is absent.
    """
    if not html:
        return None
    for pattern in _TOKEN_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    log.debug("verification_token_not_found", length=len(html))
    return None
