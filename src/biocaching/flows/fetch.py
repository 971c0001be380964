"""
Prefect flow for snapshotting observations near a point.

Run locally:
    BIOCACHING_API_KEY=... python -m biocaching.flows.fetch

The flow reuses the persisted session (``biocaching login`` first); the
request is made anonymously if no session exists.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from prefect import flow, task

from biocaching.client import BiocachingClient
from biocaching.store import SnapshotStore

# Snapshot store rooted in the working directory
store = SnapshotStore(Path("data"))

SNAPSHOT_TTL = timedelta(hours=1)


def snapshot_path(lat: float, lon: float, distance: float) -> Path:
    """Relative path of the snapshot for one query."""
    return Path(f"nearby/{lat:.4f}_{lon:.4f}_{int(distance)}m.json")


@task(name="fetch-nearby-observations", retries=2, retry_delay_seconds=5)
def fetch_nearby_observations(lat: float, lon: float, distance: float) -> list[dict[str, Any]]:
    """Fetch and normalize observations within ``distance`` metres."""
    client = BiocachingClient.from_settings()
    observations = client.get_observations_by_distance(distance, lat, lon)
    return [obs.model_dump(mode="json") for obs in observations]


@task(name="save-snapshot")
def save_snapshot(
    observations: list[dict[str, Any]],
    lat: float,
    lon: float,
    distance: float,
) -> Path:
    """Save normalized observations via store."""
    return store.write(
        snapshot_path(lat, lon, distance),
        observations,
        source="api.biocaching.com",
        valid_until=datetime.now(UTC) + SNAPSHOT_TTL,
        location={"lat": lat, "lon": lon},
        distance=distance,
    )


@flow(name="fetch-nearby", log_prints=True)
def fetch_nearby(lat: float, lon: float, distance: float = 5000) -> dict[str, Any]:
    """
    Snapshot observations around (lat, lon).

    Skips the request when the previous snapshot for the same query is
    still fresh.
    """
    path = snapshot_path(lat, lon, distance)
    if store.is_fresh(path):
        print(f"Snapshot {path} is fresh, skipping fetch.")
        observations = store.read(path) or []
    else:
        print(f"Fetching observations within {distance:.0f} m of ({lat}, {lon})...")
        observations = fetch_nearby_observations(lat, lon, distance)
        output_path = save_snapshot(observations, lat, lon, distance)
        print(f"Saved {len(observations)} observations to {output_path}")

    return {"path": str(store.base / path), "observations": len(observations)}


if __name__ == "__main__":
    result = fetch_nearby(lat=59.91, lon=10.75)
    print(f"Flow complete: {result}")
