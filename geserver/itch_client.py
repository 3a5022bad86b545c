"""
itch.io server-side API client
Fetches the upload list of a game and resolves upload download links
"""

import logging
from typing import Dict, List, Optional

import requests

from geserver.constants import ITCH_API_BASE

logger = logging.getLogger("main")


class FetchResult:
    """Outcome of an itch.io request: either a payload or an error message"""

    def __init__(self, uploads: Optional[List[Dict]] = None, error: Optional[str] = None, url: Optional[str] = None):
        self.uploads = uploads or []
        self.error = error
        self.url = url

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> "FetchResult":
        return cls(error=error)

    def __repr__(self):
        if self.ok:
            return f"<FetchResult ok uploads={len(self.uploads)}>"
        return f"<FetchResult error={self.error!r}>"


class ItchClient:
    """Thin wrapper over https://itch.io/api/1/<key>/..."""

    def __init__(self, api_key: str, timeout: int = 15, base_url: str = ITCH_API_BASE, session=None):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path: str) -> Dict:
        url = f"{self.base_url}/{self.api_key}/{path}"
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected response body from itch.io")
        # itch.io reports API level failures with 200 and an errors list
        if data.get("errors"):
            raise ValueError("; ".join(str(e) for e in data["errors"]))
        return data

    def fetch_uploads(self, title_id: str) -> FetchResult:
        """Return the current upload list for a game, never raising."""
        if not self.api_key:
            return FetchResult.failure("ITCH_API_KEY is not configured")

        try:
            data = self._get(f"game/{title_id}/uploads")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to fetch uploads for {title_id}: {e}")
            return FetchResult.failure(str(e))
        except ValueError as e:
            logger.warning(f"Invalid uploads response for {title_id}: {e}")
            return FetchResult.failure(str(e))

        uploads = data.get("uploads") or []
        logger.debug(f"Fetched {len(uploads)} uploads for {title_id}")
        return FetchResult(uploads=uploads)

    def fetch_download_url(self, upload_id: str) -> FetchResult:
        """Ask itch.io for a short lived download link for one upload."""
        if not self.api_key:
            return FetchResult.failure("ITCH_API_KEY is not configured")

        try:
            data = self._get(f"upload/{upload_id}/download")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to get download link for upload {upload_id}: {e}")
            return FetchResult.failure(str(e))
        except ValueError as e:
            return FetchResult.failure(str(e))

        if not data.get("url"):
            return FetchResult.failure("No URL returned")
        return FetchResult(url=data["url"])
