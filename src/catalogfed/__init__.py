"""catalogfed — Federated search and conditional updates for product catalogs.

Compensates for two gaps of managed search backends:

  - Querying many collections as one ranked, counted operation
  - Concurrency-safe upserts of nested sub-collections (price windows)
"""

__version__ = "0.1.0"
