"""
Supabase backend client (tables, RPC stored procedures, object storage).

One SupabaseClient is constructed at application startup (see main.py),
shared through app.state, and closed at shutdown. Services receive it as a
constructor argument instead of importing a module-level instance.

API details:
  Tables:   {SUPABASE_URL}/rest/v1/{table}   (PostgREST)
  RPC:      POST {SUPABASE_URL}/rest/v1/rpc/{function}
  Storage:  GET    {SUPABASE_URL}/storage/v1/object/{bucket}/{path}   (download)
            DELETE {SUPABASE_URL}/storage/v1/object/{bucket}  {"prefixes": [...]}
  Auth:     apikey + Authorization: Bearer <service role key>

Retries on 429, 5xx and network errors with linear backoff. Other 4xx
responses raise SupabaseError immediately.
"""

import logging
import time
from typing import Any, Optional

import httpx

import config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 1.0   # Seconds; wait = base × attempt (1s, 2s, 3s)


class SupabaseError(RuntimeError):
    """Raised when the backend returns a non-retryable error or retries run out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SupabaseClient:
    def __init__(
        self,
        url: str,
        service_key: str,
        storage_bucket: str = "videos",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        if not url:
            raise ValueError("SUPABASE_URL is not configured")

        self.url = url.rstrip("/")
        self.storage_bucket = storage_bucket
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls) -> "SupabaseClient":
        return cls(
            url=config.SUPABASE_URL,
            service_key=config.SUPABASE_SERVICE_ROLE_KEY,
            storage_bucket=config.STORAGE_BUCKET,
            timeout=config.REQUEST_TIMEOUT,
        )

    def close(self) -> None:
        self._http.close()

    # ======================================================================
    # Tables
    # ======================================================================

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        columns: str = "*",
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Read rows. filters are equality matches ({"user_email": "a@x.com"}),
        order is PostgREST syntax ("created_at.desc").
        """
        params = {"select": columns, **_eq_filters(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", f"/rest/v1/{table}", params=params) or []

    def insert(self, table: str, row: dict) -> dict:
        rows = self._request(
            "POST", f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise SupabaseError(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table: str, values: dict, filters: dict[str, Any]) -> list[dict]:
        if not filters:
            raise ValueError("Refusing to update without filters")
        return self._request(
            "PATCH", f"/rest/v1/{table}",
            params=_eq_filters(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        ) or []

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict]:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        return self._request(
            "DELETE", f"/rest/v1/{table}",
            params=_eq_filters(filters),
            headers={"Prefer": "return=representation"},
        ) or []

    # ======================================================================
    # Stored procedures
    # ======================================================================

    def rpc(self, function: str, args: Optional[dict] = None) -> Any:
        """Call a stored procedure. Returns the decoded JSON body as-is."""
        return self._request("POST", f"/rest/v1/rpc/{function}", json=args or {})

    # ======================================================================
    # Storage
    # ======================================================================

    def download_object(self, path: str, bucket: Optional[str] = None) -> bytes:
        """Raw bytes of one stored object."""
        bucket = bucket or self.storage_bucket
        object_path = f"/storage/v1/object/{bucket}/{path.lstrip('/')}"
        return self._request("GET", object_path, raw=True) or b""

    def remove_objects(self, paths: list[str], bucket: Optional[str] = None) -> None:
        bucket = bucket or self.storage_bucket
        self._request(
            "DELETE", f"/storage/v1/object/{bucket}",
            json={"prefixes": paths},
        )

    # ======================================================================
    # Transport with retry
    # ======================================================================

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
        raw: bool = False,
    ) -> Any:
        url = f"{self.url}{path}"
        merged_headers = {**self._headers, **(headers or {})}

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = self._http.request(
                    method, url, params=params, json=json, headers=merged_headers,
                )
            except httpx.RequestError as e:
                wait_time = RETRY_BACKOFF_BASE * attempt
                logger.warning(
                    f"Network error on {method} {path}, "
                    f"attempt {attempt}/{MAX_RETRIES}: {e}"
                )
                if attempt < MAX_RETRIES:
                    time.sleep(wait_time)
                    continue
                raise SupabaseError(
                    f"{method} {path} failed after {MAX_RETRIES} retries: {e}"
                ) from e

            # --- Success ---
            if response.status_code < 300:
                if raw:
                    return response.content
                if response.status_code == 204 or not response.content:
                    return None
                return response.json()

            # --- Rate limited / server error: retryable ---
            if response.status_code == 429 or response.status_code >= 500:
                wait_time = RETRY_BACKOFF_BASE * attempt
                logger.warning(
                    f"Backend returned {response.status_code} on {method} {path}, "
                    f"attempt {attempt}/{MAX_RETRIES}, waiting {wait_time}s..."
                )
                if attempt < MAX_RETRIES:
                    time.sleep(wait_time)
                continue

            # --- Client error: not retryable ---
            logger.error(
                f"Backend error {response.status_code} on {method} {path}: "
                f"{response.text[:300]}"
            )
            raise SupabaseError(
                f"Backend returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.error(f"All {MAX_RETRIES} retries exhausted for {method} {path}")
        raise SupabaseError(
            f"{method} {path} failed after {MAX_RETRIES} retries",
            status_code=response.status_code,
        )


def _eq_filters(filters: Optional[dict[str, Any]]) -> dict[str, str]:
    """{"id": "abc"} → {"id": "eq.abc"}"""
    if not filters:
        return {}
    return {column: f"eq.{value}" for column, value in filters.items()}
