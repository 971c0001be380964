"""
Biocaching API client.

Thin wrappers around the REST endpoints of https://api.biocaching.com/.
Every request carries the API key (``X-User-Api-Key``); requests made
while signed in also carry ``X-User-Email`` and ``X-User-Token``.

Observation reads are normalized before they are returned; writes and
settings calls return the server's JSON as-is. Transport and HTTP errors
(``requests.RequestException``) propagate to the caller untouched.

Usage::

    from biocaching import BiocachingClient, JsonFileStore

    client = BiocachingClient("my-api-key", JsonFileStore(Path("session.json")))
    if not client.restore_session():
        client.login("me@example.com", "secret")
    for obs in client.get_observations(size=20):
        print(obs.display_name, obs.location)

Every method blocks. ``submit`` runs one on a single background worker and
returns a ``concurrent.futures.Future`` that resolves exactly once::

    future = client.submit(client.get_observation, 1234)
    future.add_done_callback(lambda f: print(f.result()))
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import IO, TYPE_CHECKING, Any, TypeVar

from biocaching.config import DEFAULT_ENDPOINT, DEFAULT_LANGUAGE, Settings, get_settings
from biocaching.services.http import session as default_http
from biocaching.session import SessionStore
from biocaching.store import JsonFileStore, MemoryStore

if TYPE_CHECKING:
    from collections.abc import Callable

    import requests

    from biocaching.normalize import ObservationNormalizer
    from biocaching.schemas import Observation, Session
    from biocaching.store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10


class BiocachingClient:
    """Session-aware client for the Biocaching REST API."""

    def __init__(
        self,
        api_key: str,
        store: KeyValueStore | None = None,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        language: str = DEFAULT_LANGUAGE,
        http: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/") + "/"
        self.http = http or default_http
        self.sessions = SessionStore(store if store is not None else MemoryStore())
        self.sessions.restore()
        self.sessions.ensure_language(language)
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BiocachingClient:
        """Client configured from settings, backed by the persisted session file."""
        settings = settings or get_settings()
        return cls(
            settings.api_key,
            JsonFileStore(settings.session_file),
            endpoint=settings.endpoint,
            language=settings.language,
        )

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self.sessions.session

    @property
    def language(self) -> str:
        return self.sessions.language

    def restore_session(self) -> bool:
        """Reload the persisted session; True if it is usable."""
        return self.sessions.restore()

    def login(self, email: str, password: str) -> Session:
        """POST users/sign_in and persist the resulting session."""
        body = {"user": {"email": email, "password": password}}
        response = self._request("POST", "users/sign_in", json=body, auth=False)
        return self.sessions.apply_login_result(response)

    def logout(self) -> None:
        """Forget the persisted identity (the language preference stays)."""
        self.sessions.clear()

    def normalizer(self) -> ObservationNormalizer:
        return self.sessions.normalizer()

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def get_user_settings(self) -> dict[str, Any]:
        """GET settings"""
        return self._request("GET", "settings")

    def update_user_settings(self, settings: dict[str, Any]) -> dict[str, Any]:
        """PUT settings"""
        return self._request("PUT", "settings", json=settings)

    # -------------------------------------------------------------------------
    # Observations
    # -------------------------------------------------------------------------

    def get_observation(self, observation_id: int | str) -> Observation:
        """GET observations/{id}, normalized."""
        response = self._request("GET", f"observations/{observation_id}")
        return self.normalizer().normalize_detail(response)

    def get_observations(self, from_: int = 0, size: int = DEFAULT_PAGE_SIZE) -> list[Observation]:
        """Page through all observations."""
        return self._search({"from": from_, "size": size})

    def get_observations_by_user(
        self,
        user_id: int | str,
        from_: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> list[Observation]:
        """Page through one user's observations."""
        return self._search({"user_id": user_id, "from": from_, "size": size})

    def get_observations_by_distance(
        self,
        distance: float,
        lat: float,
        lon: float,
    ) -> list[Observation]:
        """Observations within ``distance`` metres of (lat, lon)."""
        return self._search({"latitude": lat, "longitude": lon, "distance": distance})

    def upload_observation(
        self,
        taxon_id: int | str,
        observed_at: datetime | str,
        latitude: float,
        longitude: float,
        picture: IO[bytes] | bytes | None = None,
    ) -> dict[str, Any]:
        """POST observations as multipart form data."""
        data = {
            "observation[taxon_id]": str(taxon_id),
            "observation[observed_at]": _timestamp(observed_at),
            "observation[latitude]": str(latitude),
            "observation[longitude]": str(longitude),
        }
        files = {"observation[picture]": picture} if picture is not None else None
        return self._request("POST", "observations", data=data, files=files)

    def edit_observation(
        self,
        observation_id: int | str,
        *,
        taxon_id: int | str | None = None,
        observed_at: datetime | str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        picture: IO[bytes] | bytes | None = None,
    ) -> dict[str, Any]:
        """
        PUT observations/{id} with the supplied fields only.

        Coordinates are sent as a pair; passing only one of them is an error.

        Raises:
            ValueError: no field was supplied, or only one coordinate.
        """
        if (latitude is None) != (longitude is None):
            raise ValueError("latitude and longitude must be edited together")

        data: dict[str, str] = {}
        if taxon_id is not None:
            data["observation[taxon_id]"] = str(taxon_id)
        if observed_at is not None:
            data["observation[observed_at]"] = _timestamp(observed_at)
        if latitude is not None and longitude is not None:
            data["observation[latitude]"] = str(latitude)
            data["observation[longitude]"] = str(longitude)
        files = {"observation[picture]": picture} if picture is not None else None

        if not data and files is None:
            raise ValueError("nothing to edit")
        return self._request("PUT", f"observations/{observation_id}", data=data, files=files)

    def delete_observation(self, observation_id: int | str) -> dict[str, Any]:
        """DELETE observations/{id}"""
        return self._request("DELETE", f"observations/{observation_id}")

    # -------------------------------------------------------------------------
    # Terms of use
    # -------------------------------------------------------------------------

    def retrieve_terms(self) -> str:
        """The terms as one HTML string: numbered paragraphs, then the update date."""
        response = self._request("GET", "terms/")
        terms = response.get("terms") or []
        numbered = "".join(f"{i}. {term}<br>" for i, term in enumerate(terms, start=1))
        return f"{numbered}{response.get('updated_at', '')}"

    def status_terms(self) -> bool:
        """True if the signed-in user has accepted the terms."""
        response = self._request("GET", "terms/status")
        return response.get("status") == "accepted"

    def accept_terms(self) -> dict[str, Any]:
        return self._request("GET", "terms/accept")

    # -------------------------------------------------------------------------
    # Background execution
    # -------------------------------------------------------------------------

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        """Run ``fn`` on the client's single worker thread.

        Calls run one at a time in submission order, so a ``login`` submitted
        before a read completes before that read starts.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="biocaching")
        return self._executor.submit(fn, *args, **kwargs)

    def close(self) -> None:
        """Wait for submitted calls and stop the worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> BiocachingClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _headers(self, auth: bool) -> dict[str, str]:
        headers = {"X-User-Api-Key": self.api_key}
        if auth:
            headers.update(self.sessions.auth_headers())
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        **kwargs: Any,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        url = f"{self.endpoint}{path}"
        logger.debug("%s %s", method, url)
        resp = self.http.request(method, url, headers=self._headers(auth), **kwargs)
        resp.raise_for_status()
        return resp.json()

    def _search(self, params: dict[str, Any]) -> list[Observation]:
        response = self._request("GET", "observations/", params=params)
        return self.normalizer().normalize_search(response)


def _timestamp(value: datetime | str) -> str:
    return value.isoformat() if isinstance(value, datetime) else value
