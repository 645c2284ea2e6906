"""Backend layer — Pluggable connectors for the document store.

Built-in backends:
  - opensearch: OpenSearch v2+ (``opensearch-py`` async client)
  - memory: In-process store with optimistic locking (tests, local development)

Implement ``DocumentBackend`` to connect another store.
"""
