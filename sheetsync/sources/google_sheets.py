from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .base import SourceFetchError

"""Google Sheets source (Sheets API v4, read-only service account).

Each sheet name is mapped to the spreadsheet that holds it, so shipments and
invoices can live in different spreadsheets. Requests go through an
``httplib2.Http`` with an explicit timeout; a hung API call fails the fetch
instead of blocking the sync.
"""

__all__ = [
    "SCOPES",
    "GoogleSheetsSource",
    "load_service_account_info",
]

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

_SIMPLE_TITLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_RENDER_OPTIONS = {
    "unformatted": {"valueRenderOption": "UNFORMATTED_VALUE", "dateTimeRenderOption": "SERIAL_NUMBER"},
    "formatted": {"valueRenderOption": "FORMATTED_VALUE"},
}


def _quote_title(title: str) -> str:
    """Worksheet title formatted for A1 notation (``2025`` needs quotes)."""
    if _SIMPLE_TITLE_RE.fullmatch(title):
        return title
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


def load_service_account_info(
    credentials_env: str | None = None, credentials_file: str | None = None
) -> dict[str, Any]:
    """Read the service account key from an env var (JSON text) or a key file."""
    raw = os.getenv(credentials_env) if credentials_env else None
    if raw:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise SourceFetchError(f"{credentials_env} is not valid JSON: {e}") from e
    if credentials_file:
        path = Path(credentials_file).expanduser()
        if not path.exists():
            raise SourceFetchError(f"credentials file not found: {path}")
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SourceFetchError(f"credentials file is not valid JSON: {e}") from e
    raise SourceFetchError(
        f"no service account credentials (set {credentials_env or 'credentials_env'} or credentials_file)"
    )


class GoogleSheetsSource:
    """Reads value ranges from one or more spreadsheets."""

    def __init__(
        self,
        spreadsheets: Mapping[str, str],
        credentials_info: Mapping[str, Any],
        *,
        timeout: float = 30.0,
        value_render: str = "unformatted",
        service: Any = None,
    ) -> None:
        """
        Args:
            spreadsheets: sheet name -> spreadsheet id
            credentials_info: parsed service account key
            timeout: socket timeout (seconds) per API request
            value_render: ``unformatted`` (numbers / serial dates) or ``formatted``
            service: prebuilt Sheets service (tests)
        """
        self.spreadsheets = dict(spreadsheets)
        self.render_options = _RENDER_OPTIONS[value_render]
        self._credentials_info = credentials_info
        self._timeout = timeout
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            try:
                credentials = service_account.Credentials.from_service_account_info(
                    dict(self._credentials_info), scopes=SCOPES
                )
            except ValueError as e:
                raise SourceFetchError(f"invalid service account key: {e}") from e
            http = google_auth_httplib2.AuthorizedHttp(
                credentials, http=httplib2.Http(timeout=self._timeout)
            )
            self._service = build("sheets", "v4", http=http, cache_discovery=False)
        return self._service

    def fetch_range(self, sheet_name: str, cell_range: str) -> list[list[Any]]:
        spreadsheet_id = self.spreadsheets.get(sheet_name)
        if not spreadsheet_id:
            raise SourceFetchError(f"no spreadsheet id configured for sheet '{sheet_name}'")
        a1 = f"{_quote_title(sheet_name)}!{cell_range}"
        try:
            response = (
                self._get_service()
                .spreadsheets()
                .values()
                .get(spreadsheetId=spreadsheet_id, range=a1, **self.render_options)
                .execute()
            )
        except HttpError as e:
            raise SourceFetchError(f"sheets api error range={a1}: {e}") from e
        except GoogleAuthError as e:
            # token refresh: revoked key, clock skew, DNS failure on the token endpoint
            raise SourceFetchError(f"sheets api auth failed range={a1}: {e}") from e
        except (OSError, httplib2.HttpLib2Error) as e:
            # socket timeouts are OSError subclasses
            raise SourceFetchError(f"sheets api unreachable range={a1}: {e}") from e
        rows = response.get("values", [])
        logger.debug("fetched range=%s rows=%d", a1, len(rows))
        return rows
