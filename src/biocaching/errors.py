"""Exceptions raised by the Biocaching client.

Transport failures are not wrapped: ``requests`` exceptions reach the
caller unchanged. An unauthenticated session is a state, not an error.
"""

from __future__ import annotations


class BiocachingError(Exception):
    """Base exception for client errors."""


class LoginError(BiocachingError):
    """Sign-in did not produce a usable session."""


class NormalizationError(BiocachingError):
    """A raw observation could not be turned into an ``Observation``.

    ``index`` is the position of the offending record within a batch, or
    None for single-record normalization.
    """

    def __init__(
        self,
        message: str,
        *,
        observation_id: object = None,
        index: int | None = None,
    ) -> None:
        self.observation_id = observation_id
        self.index = index
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.observation_id is not None:
            message = f"observation {self.observation_id}: {message}"
        if self.index is not None:
            message = f"[{self.index}] {message}"
        return message
