"""
Caspio Tools

REST client for the Caspio tables that hold member and case data.
Authenticates with OAuth client credentials and pages through
`/rest/v2/tables/<table>/records`.
"""

import time
from typing import Any

import requests
from requests.adapters import HTTPAdapter
import structlog
from urllib3.util.retry import Retry

from portal.shared.config import Settings, get_settings
from portal.shared.exceptions import CaspioError, ConfigurationError

log = structlog.get_logger()

DEFAULT_PAGE_SIZE = 1000
MAX_PAGES = 50
# Refresh the token slightly before Caspio expires it
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class CaspioClient:
    """
    Thin Caspio REST client with:
      - retry on 5xx responses
      - cached bearer token
      - paged record reads
    """

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
        retries: int = 3,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.log = log.bind(component="CaspioClient", base_url=self.base_url)

        self._token: str | None = None
        self._token_expires_at = 0.0

        if session is None:
            session = requests.Session()
            retry_cfg = Retry(
                total=retries,
                backoff_factor=0.3,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=None,
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_cfg)
            for scheme in ("https://", "http://"):
                session.mount(scheme, adapter)
        self.session = session

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CaspioClient":
        """
        Build a client from CALAIM_CASPIO_* settings.

        Raises:
            ConfigurationError: If any credential is missing
        """
        settings = settings or get_settings()
        if not settings.caspio_configured:
            raise ConfigurationError(
                "Caspio credentials not configured",
                required=["CALAIM_CASPIO_BASE_URL", "CALAIM_CASPIO_CLIENT_ID", "CALAIM_CASPIO_CLIENT_SECRET"],
            )
        return cls(
            base_url=settings.caspio_base_url,
            client_id=settings.caspio_client_id,
            client_secret=settings.caspio_client_secret,
            timeout=settings.caspio_timeout_seconds,
            retries=settings.caspio_retries,
        )

    # ------------------------------------------------------------------ auth --
    def get_access_token(self) -> str:
        """Return a cached bearer token, fetching a new one when expired."""
        if self._token and time.time() < self._token_expires_at:
            return self._token

        url = f"{self.base_url}/oauth/token"
        self.log.debug("caspio_token_requested")
        try:
            resp = self.session.post(
                url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.log.error("caspio_token_request_failed", error=str(e))
            raise CaspioError(operation="token", error_message=str(e)) from e

        if resp.status_code != 200:
            self.log.error("caspio_token_rejected", status=resp.status_code, body=resp.text[:200])
            raise CaspioError(operation="token", status=resp.status_code, error_message=resp.text[:200])

        payload = resp.json()
        token = payload.get("access_token")
        if not token:
            raise CaspioError(operation="token", error_message="Response did not include access_token")

        expires_in = int(payload.get("expires_in") or 0)
        self._token = token
        self._token_expires_at = time.time() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        return token

    # --------------------------------------------------------------- records --
    def fetch_records(
        self,
        table: str,
        *,
        where: str | None = None,
        select: list[str] | None = None,
        order_by: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = MAX_PAGES,
    ) -> list[dict[str, Any]]:
        """
        Read every matching record of a table.

        Stops at the first page shorter than page_size, or after max_pages.
        """
        url = f"{self.base_url}/rest/v2/tables/{table}/records"
        records: list[dict[str, Any]] = []

        for page in range(1, max_pages + 1):
            params: dict[str, Any] = {"q.pageSize": page_size, "q.pageNumber": page}
            if where:
                params["q.where"] = where
            if select:
                params["q.select"] = ",".join(select)
            if order_by:
                params["q.orderBy"] = order_by

            rows = self._get_page(url, params)
            records.extend(rows)
            self.log.debug("caspio_page_fetched", table=table, page=page, rows=len(rows))
            if len(rows) < page_size:
                break
        else:
            self.log.warning("caspio_max_pages_reached", table=table, max_pages=max_pages)

        self.log.info("caspio_records_fetched", table=table, count=len(records))
        return records

    def _get_page(self, url: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Accept": "application/json",
        }
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            self.log.error("caspio_records_request_failed", url=url, error=str(e))
            raise CaspioError(operation="records", error_message=str(e)) from e

        if resp.status_code == 401:
            # Token revoked early; drop it so the next call re-authenticates.
            self._token = None
        if resp.status_code != 200:
            self.log.error("caspio_records_rejected", url=url, status=resp.status_code)
            raise CaspioError(operation="records", status=resp.status_code, error_message=resp.text[:200])

        payload = resp.json()
        rows = payload.get("Result", []) if isinstance(payload, dict) else []
        return [row for row in rows if isinstance(row, dict)]
