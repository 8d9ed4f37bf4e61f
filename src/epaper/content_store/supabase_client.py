"""
Supabase Client Module

Thin wrapper over the PostgREST API that Supabase exposes at
``<project url>/rest/v1/<table>``. Only the calls the e-paper generator needs
are implemented: filtered selects, inserts and updates.
"""

import logging
from typing import List, Dict, Any, Optional, Tuple, Sequence

import requests

from epaper.config import SUPABASE_URL, SUPABASE_KEY, SUPABASE_REQUEST_TIMEOUT
from epaper.errors import SourceFetchFailure

logger = logging.getLogger(__name__)


def quote_list(values: Sequence[str]) -> str:
    """Render a PostgREST list literal, e.g. ("খেলাধুলা","বিনোদন")."""
    quoted = []
    for value in values:
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        quoted.append(f'"{escaped}"')
    return "(" + ",".join(quoted) + ")"


class SupabaseClient:
    """Minimal PostgREST client for the hosted content store."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            url: Supabase project URL. Defaults to the configured one.
            key: Service role key. Defaults to the configured one.
            timeout: Request timeout in seconds.
            session: Optional requests session, mainly for tests.
        """
        self.url = (url or SUPABASE_URL or "").rstrip("/")
        self.key = key or SUPABASE_KEY
        self.timeout = timeout or SUPABASE_REQUEST_TIMEOUT
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.url and self.key)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, table: str, params: List[Tuple[str, str]],
                 json_body: Any = None, headers: Optional[Dict[str, str]] = None) -> requests.Response:
        if not self.configured:
            raise SourceFetchFailure("Supabase URL and key are not configured")

        endpoint = f"{self.url}/rest/v1/{table}"
        try:
            response = self.session.request(
                method,
                endpoint,
                params=params,
                json=json_body,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise SourceFetchFailure(f"Timeout querying {table}: {str(e)}")
        except requests.exceptions.HTTPError as e:
            detail = e.response.text[:200] if e.response is not None else ""
            raise SourceFetchFailure(f"{method} {table} failed: {str(e)} {detail}".strip())
        except requests.exceptions.RequestException as e:
            raise SourceFetchFailure(f"Connection error querying {table}: {str(e)}")
        return response

    def select(self, table: str, columns: str = "*",
               filters: Optional[List[Tuple[str, str]]] = None,
               order: Optional[List[Tuple[str, bool]]] = None,
               limit: Optional[int] = None, offset: Optional[int] = None,
               count: bool = False) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """
        Select rows from a table.

        Args:
            table: Table name.
            columns: PostgREST select expression, may embed related tables.
            filters: (column, "op.value") pairs, e.g. ("status", "eq.published").
            order: (column, descending) pairs applied in sequence.
            limit: Maximum number of rows.
            offset: Rows to skip.
            count: Ask for the exact total row count.

        Returns:
            Tuple of (rows, total count or None).

        Raises:
            SourceFetchFailure: The query failed.
        """
        params = [("select", columns)]
        params.extend(filters or [])
        if order:
            params.append(("order", ",".join(
                f"{column}.{'desc' if descending else 'asc'}" for column, descending in order
            )))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))

        headers = {"Prefer": "count=exact"} if count else None
        response = self._request("GET", table, params, headers=headers)

        rows = self._decode_rows(response, table)
        total = None
        if count:
            total = self._parse_total(response.headers.get("Content-Range", ""))
        logger.debug(f"Selected {len(rows)} rows from {table}")
        return rows, total

    @staticmethod
    def _decode_rows(response: requests.Response, table: str) -> List[Dict[str, Any]]:
        """
        Decode a PostgREST row list.

        Raises:
            SourceFetchFailure: The body is not a JSON list of objects, e.g. a proxy error page.
        """
        try:
            rows = response.json()
        except ValueError as e:
            raise SourceFetchFailure(f"Invalid JSON from {table}: {str(e)}")
        if rows is None:
            return []
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise SourceFetchFailure(f"Unexpected response shape from {table}")
        return rows

    @staticmethod
    def _parse_total(content_range: str) -> Optional[int]:
        # Content-Range: 0-9/42 or */0
        _, _, total = content_range.partition("/")
        return int(total) if total.isdigit() else None

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        response = self._request("POST", table, [], json_body=row,
                                 headers={"Prefer": "return=representation"})
        rows = self._decode_rows(response, table)
        return rows[0] if rows else {}

    def update(self, table: str, values: Dict[str, Any],
               filters: List[Tuple[str, str]]) -> None:
        """Update rows matching the filters."""
        if not filters:
            raise SourceFetchFailure(f"Refusing to update every row of {table}")
        self._request("PATCH", table, list(filters), json_body=values)
