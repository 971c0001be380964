"""
Domain models for the Biocaching client.

Pydantic models for the session and for normalized observations. Raw
server payloads are plain dicts; ``biocaching.normalize`` turns them into
the models below. Everything handed to callers is frozen.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# =============================================================================
# Session
# =============================================================================


class Session(BaseModel):
    """Snapshot of the current identity and credentials."""

    model_config = ConfigDict(frozen=True)

    email: str | None = None
    user_id: str | None = None
    token: str | None = Field(default=None, repr=False)
    display_name: str | None = None
    picture: str | None = None
    language: str = "eng"

    @property
    def authorized(self) -> bool:
        """True iff email, user id and token are all present and non-empty."""
        return bool(self.email and self.user_id and self.token)


# =============================================================================
# Observations
# =============================================================================


class Location(BaseModel):
    """Geographic point of a sighting."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Taxon(BaseModel):
    """Taxon with display-ready names."""

    model_config = ConfigDict(frozen=True)

    id: int | str
    scientific_name: str
    common_name: str = Field(..., min_length=1)


class Picture(BaseModel):
    """One photo attached to an observation, in server order."""

    model_config = ConfigDict(frozen=True)

    liked_by_current_user: bool
    primary: bool = False
    photographer: Any = None
    urls: dict[str, Any] = Field(default_factory=dict)
    likes_count: int = 0


class Observation(BaseModel):
    """A species sighting, normalized from the server's search/detail payloads.

    ``user`` is the author's profile from the response's user directory,
    exposed as a read-only mapping over a private copy.
    """

    model_config = ConfigDict(frozen=True)

    id: int | str
    comment: str | None = None
    species_id: int | str
    time: datetime | None = None
    location: Location
    user: Mapping[str, Any] | None = None
    comments_count: int = 0
    likes_count: int = 0
    liked_by_current_user: bool = False
    pictures: list[Picture] = Field(default_factory=list)
    taxon: Taxon

    @field_validator("user", mode="after")
    @classmethod
    def _read_only_user(cls, value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
        return None if value is None else MappingProxyType(dict(value))

    @field_serializer("user")
    def _serialize_user(self, value: Mapping[str, Any] | None) -> dict[str, Any] | None:
        return None if value is None else dict(value)

    @property
    def primary_picture(self) -> Picture | None:
        """The picture flagged ``primary``, else the first one."""
        for picture in self.pictures:
            if picture.primary:
                return picture
        return self.pictures[0] if self.pictures else None

    @property
    def display_name(self) -> str:
        if self.taxon.common_name != self.taxon.scientific_name:
            return f"{self.taxon.common_name} ({self.taxon.scientific_name})"
        return self.taxon.scientific_name
