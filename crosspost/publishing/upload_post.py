"""
Upload-Post Aggregation Client

Thin wrapper over the Upload-Post HTTP API, which performs the actual
per-platform publishing on our behalf:
- submit a video / photo / text job
- poll a job's status
- read, create and connect aggregation-side user profiles

Every failure (transport error, timeout, non-2xx) is raised as UpstreamError.
"""
from typing import Any, Dict, List, Optional

import requests

from ..config import Settings, get_settings
from ..exceptions import ConfigurationError, UpstreamError
from ..logging_config import upstream_logger, timed
from .content import SubmitRequest

JOB_REF_FIELDS = ("request_id", "job_id", "id")


def extract_job_ref(payload: Dict[str, Any]) -> Optional[str]:
    """Job identifier from a submission response, whichever field carries it."""
    for field in JOB_REF_FIELDS:
        value = payload.get(field)
        if value:
            return str(value)
    return None


class UploadPostClient:
    """Client for the Upload-Post aggregation API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ConfigurationError("Upload-Post API key not configured. Set UPLOAD_POST_API_KEY.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "UploadPostClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.upload_post_api_key,
            base_url=settings.upload_post_api_url,
            timeout=settings.upload_post_timeout,
        )

    # ============================================================
    # TRANSPORT
    # ============================================================

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Apikey {self.api_key}"
        try:
            return self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise UpstreamError(f"Upload-Post request timed out: {path}") from e
        except requests.RequestException as e:
            raise UpstreamError(f"Upload-Post request failed: {e}") from e

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    def _raise_for_status(self, response: requests.Response, payload: Dict[str, Any]):
        if response.ok:
            return
        message = (
            payload.get("message")
            or payload.get("error")
            or f"Upload-Post API error: {response.status_code}"
        )
        raise UpstreamError(str(message), upstream_status=response.status_code, payload=payload)

    # ============================================================
    # PUBLISHING
    # ============================================================

    @timed(upstream_logger)
    def submit(self, request: SubmitRequest) -> Dict[str, Any]:
        """Submit a publish job. Returns the raw response payload."""
        upstream_logger.info(
            "Submitting Upload-Post job",
            endpoint=request.endpoint,
            platforms=request.platforms,
            user=request.user,
        )
        # (None, value) tuples force multipart encoding without a file body
        files = [(key, (None, value)) for key, value in request.form_fields()]
        response = self._request("POST", request.endpoint, files=files)
        payload = self._json(response)
        self._raise_for_status(response, payload)
        return payload

    @timed(upstream_logger)
    def get_status(self, job_ref: str) -> Dict[str, Any]:
        """Fetch the overall and per-platform state of a submitted job."""
        response = self._request("GET", "/uploadposts/status", params={"request_id": job_ref})
        payload = self._json(response)
        self._raise_for_status(response, payload)
        return payload

    # ============================================================
    # PROFILES
    # ============================================================

    @timed(upstream_logger)
    def get_user(self, username: str) -> Optional[Dict[str, Any]]:
        """Fetch a profile, or None when Upload-Post has never seen the username."""
        response = self._request("GET", f"/uploadposts/users/{username}")
        if response.status_code == 404:
            return None
        payload = self._json(response)
        self._raise_for_status(response, payload)
        return payload

    @timed(upstream_logger)
    def create_user(self, username: str) -> bool:
        """Create a profile. Returns False if it already existed."""
        response = self._request("POST", "/uploadposts/users", json={"username": username})
        payload = self._json(response)
        if response.status_code == 409 or "already exists" in str(payload.get("message", "")):
            return False
        self._raise_for_status(response, payload)
        return True

    @timed(upstream_logger)
    def generate_connect_url(
        self,
        username: str,
        redirect_url: str,
        platforms: List[str],
        connect_title: str,
        connect_description: str,
    ) -> str:
        """Request a hosted OAuth page where the user links platform accounts."""
        response = self._request(
            "POST",
            "/uploadposts/users/generate-jwt",
            json={
                "username": username,
                "redirect_url": redirect_url,
                "connect_title": connect_title,
                "connect_description": connect_description,
                "platforms": platforms,
                "show_calendar": False,
            },
        )
        payload = self._json(response)
        self._raise_for_status(response, payload)
        access_url = payload.get("access_url")
        if not access_url:
            raise UpstreamError("Upload-Post did not return a connect URL", payload=payload)
        return access_url


def get_upload_post_client() -> Optional[UploadPostClient]:
    """FastAPI dependency. None when no API key is configured; components that
    actually need the service raise ConfigurationError themselves."""
    settings = get_settings()
    if not settings.upload_post_api_key:
        return None
    return UploadPostClient.from_settings(settings)


def require_client(client: Optional[UploadPostClient]) -> UploadPostClient:
    if client is None:
        raise ConfigurationError("Upload-Post API key not configured. Set UPLOAD_POST_API_KEY.")
    return client
