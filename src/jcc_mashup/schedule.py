"""Schedule proxy - relays the portal's class list for one day.

Every call re-reads the id mappings from the schedule page (they are what the
portal rendered for this account, and the class-list endpoint rejects requests
without them) and then POSTs the class-list query. Nothing is cached.
"""

from datetime import date, datetime, timezone
from urllib.parse import urlsplit

from src.jcc_mashup.config import ProxyConfig
from src.jcc_mashup.errors import (
    InvalidRequestError,
    SessionExpiredError,
    UpstreamError,
    UpstreamStatusError,
)
from src.jcc_mashup.logging import get_logger
from src.jcc_mashup.models import ScheduleFilters, ScheduleMappings, ScheduleRequest
from src.jcc_mashup.pages.schedule import extract_schedule_mappings
from src.jcc_mashup.session import SessionStore
from src.jcc_mashup.upstream import JSON_ACCEPT, UpstreamClient, UpstreamResponse

log = get_logger(__name__)

LOGIN_PATH = "/security/login.mvc"


def parse_day(value: str | None) -> str:
    """Normalise a requested day to YYYY-MM-DD, defaulting to today (UTC).

    Raises:
        InvalidRequestError: The value is not an ISO calendar date.
    """
    if not value:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d")
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError as e:
        raise InvalidRequestError(
            "Invalid date, expected YYYY-MM-DD", details=str(e)
        ) from e


class ScheduleProxy:
    """Fetches the GXP class list on behalf of a cached session."""

    PAGE_PATH = "/GXP/ClassSchedule.mvc"
    CLASSES_PATH = "/GXP/ClassSchedule.mvc/get_gxp_classes"

    def __init__(
        self, config: ProxyConfig, client: UpstreamClient, store: SessionStore
    ) -> None:
        self.config = config
        self.client = client
        self.store = store

    @property
    def page_url(self) -> str:
        return f"{self.config.online_base_url}{self.PAGE_PATH}"

    @property
    def classes_url(self) -> str:
        return f"{self.config.online_base_url}{self.CLASSES_PATH}"

    def fetch(self, token: str | None, day: str | None = None) -> UpstreamResponse:
        """Fetch the class list for a day using the session behind a token.

        Args:
            token: Session token issued at login.
            day: YYYY-MM-DD; today when omitted.

        Returns:
            The portal's class-list response, to be relayed unmodified.

        Raises:
            InvalidRequestError: Malformed day.
            SessionExpiredError: No valid session, or the portal answered 401 or
                redirected to its login page (the cached session is deleted in
                that case).
            UpstreamError: Any other failure.
        """
        session = self.store.get(token)
        if session is None:
            raise SessionExpiredError("Not authenticated. Please log in.")
        day = parse_day(day)

        try:
            mappings = self._load_mappings(token, session.cookies)
            payload = self.build_request(mappings, day)
            response = self.client.post(
                self.classes_url,
                cookies=session.cookies,
                json=payload.model_dump(mode="json"),
                accept=JSON_ACCEPT,
                follow_redirects=False,
            )
        except UpstreamStatusError as e:
            if e.status_code == 401:
                self.store.delete(token)
                log.warning("schedule_unauthorized", url=e.url, date=day)
                raise SessionExpiredError() from e
            log.error("schedule_fetch_failed", error=e.details, date=day)
            raise UpstreamError("Failed to fetch schedule", details=e.details) from e
        except UpstreamError as e:
            log.error("schedule_fetch_failed", error=e.details or e.message, date=day)
            raise UpstreamError(
                "Failed to fetch schedule", details=e.details or e.message
            ) from e

        if response.is_redirect:
            self._expire_if_login_redirect(token, response)
            log.error("schedule_redirected", location=response.location, date=day)
            raise UpstreamError(
                "Failed to fetch schedule",
                details=f"unexpected redirect to {response.location}",
            )

        log.info(
            "schedule_fetched",
            date=day,
            status=response.status_code,
            bytes=len(response.text),
        )
        return response

    def build_request(self, mappings: ScheduleMappings, day: str) -> ScheduleRequest:
        """Assemble the class-list query for one day from scraped mappings."""
        location_id = self.config.gxp_location_id
        if location_id is None:
            if not mappings.all_mapped_branches:
                raise UpstreamError(
                    "Failed to fetch schedule",
                    details="schedule page lists no branches",
                )
            location_id = mappings.all_mapped_branches[0].gxp_location_id

        exerciser_id = mappings.any_exerciser_id_of_unit
        if exerciser_id is None:
            exerciser_id = self.config.any_exerciser_id_of_unit

        return ScheduleRequest(
            all_mapped_areas=mappings.all_mapped_areas,
            all_mapped_instructor=mappings.all_mapped_instructor,
            all_mapped_branches=mappings.all_mapped_branches,
            filters=ScheduleFilters(date=day, gxp_location_id=location_id),
            gxp_account_id=mappings.gxp_account_id,
            any_exerciser_id_of_unit=exerciser_id,
        )

    def _expire_if_login_redirect(
        self, token: str | None, response: UpstreamResponse
    ) -> None:
        # Expired portal sessions are bounced to the login page instead of a 401
        if LOGIN_PATH in urlsplit(response.location or "").path.lower():
            self.store.delete(token)
            log.warning("schedule_login_redirect", location=response.location)
            raise SessionExpiredError()

    def _load_mappings(
        self, token: str | None, cookies: dict[str, str]
    ) -> ScheduleMappings:
        response = self.client.get(self.page_url, cookies=cookies, follow_redirects=False)
        if response.is_redirect:
            self._expire_if_login_redirect(token, response)
            raise UpstreamError(
                "Schedule page redirected",
                details=f"redirect to {response.location}",
            )
        mappings = extract_schedule_mappings(response.text)
        if mappings is None:
            raise UpstreamError(
                "Schedule mappings not found",
                details="no id mappings embedded in the schedule page",
            )
        return mappings
