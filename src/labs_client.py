# src/labs_client.py
"""
DataForSEO Labs Client

Forwards keyword research requests to the DataForSEO API using the
server-held credential pair and returns the upstream payload untouched.

Setup:
    1. Create a .env file with your DataForSEO credentials:
       DATAFORSEO_LOGIN=your_login
       DATAFORSEO_PASSWORD=your_password
    2. Optionally set DATAFORSEO_API_URL and DATAFORSEO_TIMEOUT
"""

import base64
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.dataforseo.com"
RELATED_KEYWORDS_PATH = "/v3/dataforseo_labs/google/related_keywords/live"
LOCATIONS_AND_LANGUAGES_PATH = "/v3/dataforseo_labs/locations_and_languages"
SERP_ORGANIC_PATH = "/v3/serp/google/organic/live/advanced"

STATUS_OK = 20000


class LabsError(Exception):
    """Base error for everything that can go wrong talking to the Labs API."""

    default_message = "Failed to fetch keyword data"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(LabsError):
    """Credentials are missing; raised before any network call."""

    default_message = "API credentials not configured"


class UpstreamTransportError(LabsError):
    """Network failure, non-2xx HTTP status or an unreadable body."""


class UpstreamLogicalError(LabsError):
    """HTTP 2xx but the payload status code signals failure."""


@dataclass
class Config:
    """Configuration settings for the Labs client."""
    login: str
    password: str
    api_url: str = DEFAULT_API_URL
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "Config":
        """
        Read the credential pair and connection settings from the environment.

        Raises:
            ConfigurationError: If either credential is missing
        """
        login = os.getenv("DATAFORSEO_LOGIN")
        password = os.getenv("DATAFORSEO_PASSWORD")
        if not login or not password:
            raise ConfigurationError()

        timeout = os.getenv("DATAFORSEO_TIMEOUT")
        try:
            timeout_value = float(timeout) if timeout else None
        except ValueError:
            raise ConfigurationError(f"Invalid DATAFORSEO_TIMEOUT: {timeout!r}") from None

        return cls(
            login=login,
            password=password,
            api_url=(os.getenv("DATAFORSEO_API_URL") or DEFAULT_API_URL).rstrip("/"),
            timeout=timeout_value,
        )


class RelatedKeywordsRequest(BaseModel):
    """Search form parameters forwarded as a single upstream task."""
    keyword: str = Field(..., min_length=1, max_length=700, description="Seed keyword")
    location_code: int = Field(2840, description="DataForSEO location code (2840 = United States)")
    language_code: str = Field("en", min_length=2, max_length=8)
    depth: int = Field(3, ge=0, le=4, description="Related keywords search depth")
    limit: int = Field(20, ge=1, le=1000, description="Maximum number of returned keywords")
    include_seed_keyword: bool = False
    include_serp_info: bool = False
    ignore_synonyms: bool = False
    include_clickstream_data: bool = False
    replace_with_core_keyword: bool = False

    @field_validator("keyword")
    @classmethod
    def keyword_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("keyword must not be blank")
        return value

    def to_task(self) -> Dict[str, Any]:
        return self.model_dump()


def build_auth_header(login: str, password: str) -> str:
    """Build the HTTP Basic Authorization header value."""
    token = base64.b64encode(f"{login}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class LabsClient:
    """Thin synchronous client for the DataForSEO endpoints the dashboard uses."""

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.calls = 0

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": build_auth_header(self.config.login, self.config.password),
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, body: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Issue one request and return the decoded payload.

        Args:
            method: HTTP method
            path: Endpoint path below the API base URL
            body: Task list posted as JSON, if any

        Returns:
            Decoded JSON object as returned upstream

        Raises:
            UpstreamTransportError: On network failure, non-2xx status or bad JSON
            UpstreamLogicalError: When the payload status code is not 20000
        """
        url = f"{self.config.api_url}{path}"
        start_time = time.time()
        self.calls += 1

        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                json=body,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise UpstreamTransportError() from e

        elapsed = time.time() - start_time

        if not 200 <= response.status_code < 300:
            logger.error(f"{method} {path} returned HTTP {response.status_code} ({elapsed:.2f}s)")
            raise UpstreamTransportError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned invalid JSON")
            raise UpstreamTransportError("Upstream returned invalid JSON", status_code=response.status_code) from e

        if not isinstance(payload, dict):
            raise UpstreamTransportError("Upstream returned an unexpected payload", status_code=response.status_code)

        status_code = payload.get("status_code")
        if status_code != STATUS_OK:
            message = payload.get("status_message")
            logger.warning(f"{method} {path} upstream status {status_code}: {message}")
            raise UpstreamLogicalError(
                message if isinstance(message, str) and message else None,
                status_code=status_code if isinstance(status_code, int) else None,
            )

        logger.info(f"{method} {path} OK in {elapsed:.2f}s (cost: {payload.get('cost', 'n/a')})")
        return payload

    def related_keywords(self, request: RelatedKeywordsRequest) -> Dict[str, Any]:
        """Fetch related keywords for the seed keyword in ``request``."""
        logger.info(
            f"Related keywords: keyword='{request.keyword}', location={request.location_code}, "
            f"language={request.language_code}, depth={request.depth}, limit={request.limit}"
        )
        return self._request("POST", RELATED_KEYWORDS_PATH, [request.to_task()])

    def serp_organic(self, task: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", SERP_ORGANIC_PATH, [task])

    def locations_and_languages(self) -> Dict[str, Any]:
        """
        Fetch the location and language options for the search form.

        Returns:
            Dict with ``locations`` and ``languages`` option lists sorted by
            label, and ``locationLanguages`` mapping each location code to its
            available languages
        """
        payload = self._request("GET", LOCATIONS_AND_LANGUAGES_PATH)
        return build_menu_options(payload)


def build_menu_options(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce the locations_and_languages payload to select options."""
    tasks = payload.get("tasks") or []
    task = tasks[0] if isinstance(tasks, list) and tasks and isinstance(tasks[0], dict) else {}
    result = task.get("result") or []

    locations = {}
    languages = {}
    location_languages = {}

    for location in result if isinstance(result, list) else []:
        if not isinstance(location, dict) or location.get("location_code") is None:
            continue
        code = str(location["location_code"])
        locations.setdefault(code, {"value": code, "label": location.get("location_name") or code})

        available = location_languages.setdefault(code, {})
        for language in location.get("available_languages") or []:
            if not isinstance(language, dict) or not language.get("language_code"):
                continue
            language_code = language["language_code"]
            name = language.get("language_name") or language_code
            # first name seen wins for each language code
            languages.setdefault(language_code, name)
            available.setdefault(language_code, name)

    def options(mapping: Dict[str, str]) -> List[Dict[str, str]]:
        return sorted(
            ({"value": value, "label": label} for value, label in mapping.items()),
            key=lambda option: option["label"].lower(),
        )

    return {
        "locations": sorted(locations.values(), key=lambda option: option["label"].lower()),
        "languages": options(languages),
        "locationLanguages": {code: options(langs) for code, langs in location_languages.items()},
    }


def fetch_related_keywords(request: RelatedKeywordsRequest,
                           session: Optional[requests.Session] = None) -> Dict[str, Any]:
    """
    Fetch related keywords with credentials read at call time.

    Raises:
        ConfigurationError: If credentials are missing (no network call is made)
        UpstreamTransportError: On transport or HTTP failure
        UpstreamLogicalError: When the upstream reports a failed task
    """
    client = LabsClient(Config.from_env(), session=session)
    return client.related_keywords(request)


def fetch_menu_options(session: Optional[requests.Session] = None) -> Dict[str, Any]:
    client = LabsClient(Config.from_env(), session=session)
    return client.locations_and_languages()
