"""Proxy configuration loaded from environment variables.

Defaults target the JCC Daxko operations portal (site 5198). For local
development, put overrides in a .env file in the project root.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ProxyConfig(BaseSettings):
    """Proxy configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Daxko operations portal
    portal_base_url: str = Field(
        default="https://operations.daxko.com",
        description="Upstream portal origin (scheme and host, no trailing slash)",
    )
    portal_site_id: int = Field(
        default=5198,
        description="Daxko online site id used in every portal path",
    )
    auth_cookie_name: str = Field(
        default=".online_auth",
        description="Upstream cookie whose presence proves a successful login",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:147.0) "
            "Gecko/20100101 Firefox/147.0"
        ),
        description="User-Agent presented to the portal",
    )

    # Upstream HTTP behaviour
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to every upstream request",
    )
    login_max_redirects: int = Field(
        default=5,
        ge=0,
        description="Redirect hops followed automatically on the login page",
    )
    find_account_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts made on the find-account redirect chain",
    )

    # Schedule payload overrides (scraped from the portal when unset)
    gxp_location_id: int | None = Field(
        default=None,
        description="GXP location id; defaults to the first scraped branch",
    )
    any_exerciser_id_of_unit: int | None = Field(
        default=None,
        description="Exerciser id sent when the schedule page does not embed one",
    )

    # Session persistence
    session_file: str = Field(
        default=".session.json",
        description="JSON file holding cached portal sessions",
    )
    session_max_age_days: int = Field(
        default=180,
        description="Maximum age of a cached session before re-login is required",
    )
    session_flush_interval_seconds: float = Field(
        default=60.0,
        description="Interval of the background flush of the session store",
    )

    # HTTP server
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    static_dir: str = Field(
        default="public",
        description="Directory served at / when it exists",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def online_base_url(self) -> str:
        """Root of the site-scoped portal paths, e.g. .../online/5198."""
        return f"{self.portal_base_url}/online/{self.portal_site_id}"

    @property
    def homepage_path(self) -> str:
        return f"/online/{self.portal_site_id}/Redirect/Homepage.mvc"

    @property
    def session_max_age_ms(self) -> int:
        return self.session_max_age_days * 24 * 60 * 60 * 1000


# Singleton pattern
_config: ProxyConfig | None = None


def get_config() -> ProxyConfig:
    """Get the proxy configuration singleton.

    Returns:
        ProxyConfig: Proxy configuration instance
    """
    global _config
    if _config is None:
        _config = ProxyConfig()
    return _config
