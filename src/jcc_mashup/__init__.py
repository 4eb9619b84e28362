"""Daxko portal proxy for the JCC studio availability page.

Logs in to the Daxko operations portal on the user's behalf, caches the
session cookies under an opaque token, and relays the group-exercise class
schedule to the browser.
"""

from src.jcc_mashup.auth import AuthFlow
from src.jcc_mashup.schedule import ScheduleProxy
from src.jcc_mashup.session import SessionStore
from src.jcc_mashup.upstream import UpstreamClient, UpstreamResponse

__all__ = [
    "AuthFlow",
    "ScheduleProxy",
    "SessionStore",
    "UpstreamClient",
    "UpstreamResponse",
]
