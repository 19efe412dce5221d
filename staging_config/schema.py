"""
StagingSettings schema.

Typed, frozen settings for the staging service.  The loader parses the
packaged ``defaults.yaml`` (plus an optional operator file and environment
overrides) into these types; bridges turn them into kernel objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from urllib.parse import quote_plus

from sqlalchemy.engine import make_url

# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Where the staging tables live.

    Either ``url`` is given explicitly, or it is derived from the Oracle
    credentials and an EZConnect ``host:port/service_name`` string.
    """

    url: str | None = None
    user: str = "apps"
    password: str = "apps"
    connect_string: str = "localhost:1521/ORCL"
    oracle_client_lib_dir: str | None = None
    echo: bool = False

    def resolved_url(self) -> str:
        """Return the SQLAlchemy URL for this database."""
        if self.url:
            return self.url
        host_port, _, service = self.connect_string.partition("/")
        if not service:
            raise ValueError(
                f"connect_string must look like host:port/service_name, got {self.connect_string!r}"
            )
        return (
            f"oracle+oracledb://{quote_plus(self.user)}:{quote_plus(self.password)}"
            f"@{host_port}/?service_name={service}"
        )

    def redacted(self) -> "DatabaseSettings":
        """Copy with the password masked (also inside an explicit url), for logging."""
        url = self.url
        if url:
            url = make_url(url).render_as_string(hide_password=True)
        return replace(self, url=url, password="***")


@dataclass(frozen=True)
class PoolSettings:
    """Bounded connection pool sizing, fixed at process start."""

    pool_min: int = 2
    pool_max: int = 10
    pool_increment: int = 1
    pool_timeout: int = 30
    pool_pre_ping: bool = True

    def __post_init__(self):
        if self.pool_min < 0:
            raise ValueError(f"pool_min must be >= 0, got {self.pool_min}")
        if self.pool_max < max(self.pool_min, 1):
            raise ValueError(
                f"pool_max ({self.pool_max}) must be >= pool_min ({self.pool_min}) and >= 1"
            )
        if self.pool_increment < 1:
            raise ValueError(f"pool_increment must be >= 1, got {self.pool_increment}")


# ---------------------------------------------------------------------------
# Import procedure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcedureSettings:
    """The PL/SQL validate -> transfer -> import entry point and its EBS session."""

    name: str = "XXAP_INVOICE_INTERFACE_PKG_WIRA.main_process"
    apps_user_id: int = 0
    apps_resp_id: int = 20639
    apps_resp_appl_id: int = 200
    staging_id_param: str | None = "p_staging_id"
    request_id_param: str | None = None


# ---------------------------------------------------------------------------
# Business defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StagingDefaults:
    """Values applied when the caller omits optional header fields."""

    invoice_type: str = "STANDARD"
    currency_code: str = "USD"
    cancel_message: str = "Cancelled by user"
    created_by: int = -1


@dataclass(frozen=True)
class StagingSettings:
    """Complete settings for one running staging service."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    pool: PoolSettings = field(default_factory=PoolSettings)
    procedure: ProcedureSettings = field(default_factory=ProcedureSettings)
    defaults: StagingDefaults = field(default_factory=StagingDefaults)
