"""
Prefect flows.

Flows:
- fetch: restore the session, fetch observations around a point, and write
  a normalized snapshot to ``data/``

Usage (local):
    python -m biocaching.flows.fetch

Usage (Prefect):
    prefect server start  # Optional, for dashboard
    prefect deployment run 'fetch-nearby/default'
"""
