"""
Raw observation payloads -> ``Observation`` models.

The server returns observations in two envelopes:

    detail:  {"observation": {...}, "users": {"<id>": {...}}}
    search:  {"hits": [{"_source": {...}}, ...], "users": {"<id>": {...}}}

Users are not embedded per observation; the ``users`` map is a directory
shared by the whole response. ``ObservationNormalizer`` resolves the user,
derives like flags for the current user, parses coordinates and the
timestamp, and picks a display name for the taxon:

    all_common_names[language] -> all_common_names["eng"] -> Scientific name

Normalization is pure. The result holds deep copies only, so mutating it
never touches the raw payload (or the reverse). Malformed records raise
``NormalizationError``; nothing is replaced with placeholder data.
"""

from __future__ import annotations

import copy
import logging
import math
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from biocaching.config import DEFAULT_LANGUAGE
from biocaching.errors import NormalizationError
from biocaching.schemas import Location, Observation, Picture, Taxon

logger = logging.getLogger(__name__)

FALLBACK_LANGUAGE = "eng"

UserDirectory = dict[Any, dict[str, Any]]


def canonical_id(value: Any) -> str | None:
    """Ids arrive as ints or strings depending on the endpoint; compare them as strings."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def capitalize_first(name: str) -> str:
    """Uppercase the first character only (``"apis mellifera"`` -> ``"Apis mellifera"``)."""
    return name[:1].upper() + name[1:]


def _non_empty(value: Any) -> str | None:
    if isinstance(value, list):
        value = next((v for v in value if isinstance(v, str) and v.strip()), None)
    if isinstance(value, str) and value.strip():
        return value
    return None


def resolve_common_name(
    common_names: dict[str, Any] | None,
    language: str,
    scientific_name: str,
) -> str:
    """Preferred language, then English, then the scientific name."""
    names = common_names or {}
    for lang in (language, FALLBACK_LANGUAGE):
        name = _non_empty(names.get(lang))
        if name is not None:
            return name
    return scientific_name


def is_liked_by(likes: list[dict[str, Any]] | None, user_id: str | None) -> bool:
    """True if ``user_id`` appears as a ``user_id`` in the likes list."""
    if user_id is None:
        return False
    return any(canonical_id(like.get("user_id")) == user_id for like in likes or [])


def index_directory(users: UserDirectory | None) -> dict[str, dict[str, Any]]:
    """Re-key a user directory by canonical id."""
    indexed: dict[str, dict[str, Any]] = {}
    for key, profile in (users or {}).items():
        user_id = canonical_id(key)
        if user_id is not None:
            indexed[user_id] = profile
    return indexed


class ObservationNormalizer:
    """Turns raw observation dicts into ``Observation`` models for one viewer."""

    def __init__(
        self,
        current_user_id: Any = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self.current_user_id = canonical_id(current_user_id)
        self.language = language

    # -------------------------------------------------------------------------
    # Single record
    # -------------------------------------------------------------------------

    def normalize(self, raw: dict[str, Any], users: UserDirectory | None = None) -> Observation:
        """Normalize one raw observation against a user directory."""
        return self._normalize(raw, index_directory(users))

    def _normalize(self, raw: dict[str, Any], directory: dict[str, dict[str, Any]]) -> Observation:
        if not isinstance(raw, dict):
            raise NormalizationError(f"record is not an object: {type(raw).__name__}")
        obs_id = raw.get("id")
        if obs_id is None:
            raise NormalizationError("missing id")

        taxon = self._taxon(raw, obs_id)
        likes = _likes(raw.get("likes"), obs_id)
        pictures = raw.get("pictures") or []
        if not isinstance(pictures, list):
            raise NormalizationError("pictures is not a list", observation_id=obs_id)
        user = directory.get(canonical_id(raw.get("user_id")) or "")

        try:
            return Observation(
                id=obs_id,
                comment=raw.get("comment"),
                species_id=taxon.id,
                time=self._observed_at(raw, obs_id),
                location=self._location(raw, obs_id),
                user=copy.deepcopy(user),
                comments_count=raw.get("comments_count") or 0,
                likes_count=len(likes),
                liked_by_current_user=is_liked_by(likes, self.current_user_id),
                pictures=[self._picture(p, obs_id) for p in pictures],
                taxon=taxon,
            )
        except ValidationError as exc:
            raise NormalizationError(str(exc), observation_id=obs_id) from exc

    def _taxon(self, raw: dict[str, Any], obs_id: Any) -> Taxon:
        taxon = raw.get("taxon")
        if not isinstance(taxon, dict):
            raise NormalizationError("missing taxon", observation_id=obs_id)
        if taxon.get("id") is None:
            raise NormalizationError("missing taxon id", observation_id=obs_id)
        scientific = _non_empty(taxon.get("scientific_name"))
        if scientific is None:
            raise NormalizationError("missing scientific name", observation_id=obs_id)

        common_names = taxon.get("all_common_names")
        if common_names is not None and not isinstance(common_names, dict):
            raise NormalizationError("all_common_names is not an object", observation_id=obs_id)

        scientific = capitalize_first(scientific)
        return Taxon(
            id=taxon["id"],
            scientific_name=scientific,
            common_name=resolve_common_name(common_names, self.language, scientific),
        )

    def _location(self, raw: dict[str, Any], obs_id: Any) -> Location:
        location = raw.get("location")
        if not isinstance(location, dict):
            raise NormalizationError("missing location", observation_id=obs_id)
        # Search hits carry Elasticsearch geo points ("lon"), detail uses "lng".
        lng = location.get("lng", location.get("lon"))
        return Location(
            lat=_coordinate(location.get("lat"), "lat", obs_id),
            lng=_coordinate(lng, "lng", obs_id),
        )

    def _observed_at(self, raw: dict[str, Any], obs_id: Any) -> datetime | None:
        value = raw.get("observed_at")
        if not value:
            return None
        try:
            return datetime.fromisoformat(str(value))
        except ValueError:
            raise NormalizationError(
                f"unparseable observed_at {value!r}", observation_id=obs_id
            ) from None

    def _picture(self, picture: dict[str, Any], obs_id: Any) -> Picture:
        if not isinstance(picture, dict):
            raise NormalizationError(
                f"picture is not an object: {picture!r}", observation_id=obs_id
            )
        likes = _likes(picture.get("likes"), obs_id)
        return Picture(
            liked_by_current_user=is_liked_by(likes, self.current_user_id),
            primary=bool(picture.get("primary")),
            photographer=copy.deepcopy(picture.get("photographer")),
            urls=copy.deepcopy(picture.get("urls") or {}),
            likes_count=len(likes),
        )

    # -------------------------------------------------------------------------
    # Batches and envelopes
    # -------------------------------------------------------------------------

    def normalize_batch(
        self,
        raws: list[dict[str, Any]],
        users: UserDirectory | None = None,
    ) -> list[Observation]:
        """
        Normalize a list sharing one user directory, preserving order.

        The first malformed record aborts the batch; the raised
        ``NormalizationError`` carries its position in ``index``.
        """
        directory = index_directory(users)
        result: list[Observation] = []
        for i, raw in enumerate(raws):
            try:
                result.append(self._normalize(raw, directory))
            except NormalizationError as exc:
                logger.warning("Rejecting batch of %d at record %d: %s", len(raws), i, exc)
                raise NormalizationError(
                    exc.args[0], observation_id=exc.observation_id, index=i
                ) from exc
        return result

    def normalize_detail(self, response: dict[str, Any]) -> Observation:
        """Normalize a ``GET observations/{id}`` response."""
        raw = response.get("observation")
        if not isinstance(raw, dict):
            raise NormalizationError("response has no observation")
        return self.normalize(raw, response.get("users"))

    def normalize_search(self, response: dict[str, Any]) -> list[Observation]:
        """Normalize a ``GET observations/`` search response."""
        hits = response.get("hits") or []
        raws = [hit.get("_source", hit) if isinstance(hit, dict) else hit for hit in hits]
        return self.normalize_batch(raws, response.get("users"))


def _likes(value: Any, obs_id: Any) -> list[dict[str, Any]]:
    """A likes list, every entry an object carrying ``user_id``."""
    if not value:
        return []
    if not isinstance(value, list) or not all(isinstance(like, dict) for like in value):
        raise NormalizationError(f"malformed likes {value!r}", observation_id=obs_id)
    return value


def _coordinate(value: Any, name: str, obs_id: Any) -> float:
    if value is None or isinstance(value, bool):
        raise NormalizationError(f"missing {name}", observation_id=obs_id)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise NormalizationError(f"non-numeric {name} {value!r}", observation_id=obs_id) from None
    if not math.isfinite(number):
        raise NormalizationError(f"non-finite {name} {value!r}", observation_id=obs_id)
    return number
