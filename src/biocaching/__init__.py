"""Biocaching - Python client for the Biocaching biodiversity-observation API.

Architecture::

    config.py      Settings (environment / .env)
    store.py       Key-value persistence (in-memory, JSON file)
    session.py     Session lifecycle: restore, login, logout, language
    normalize.py   Raw server observations -> Observation models
    client.py      REST endpoints (observations, settings, terms)
    flows/         Prefect flow: fetch nearby observations into a snapshot
    services/      Shared HTTP session with retry

Data flow: client -> services.http -> raw JSON -> normalize -> schemas.
"""

__version__ = "0.1.0"

from biocaching.client import BiocachingClient
from biocaching.config import Settings, get_settings
from biocaching.errors import BiocachingError, LoginError, NormalizationError
from biocaching.normalize import ObservationNormalizer
from biocaching.schemas import Location, Observation, Picture, Session, Taxon
from biocaching.session import SessionStore
from biocaching.store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "BiocachingClient",
    "BiocachingError",
    "JsonFileStore",
    "KeyValueStore",
    "Location",
    "LoginError",
    "MemoryStore",
    "NormalizationError",
    "Observation",
    "ObservationNormalizer",
    "Picture",
    "Session",
    "SessionStore",
    "Settings",
    "Taxon",
    "__version__",
    "get_settings",
]
