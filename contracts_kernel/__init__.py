"""
Contracts Kernel

Core of the contracts data service for grant-funding contract records:
- Fixed contract lifecycle with validated status transitions
- Per-contract-number serialization of create sequences
- Optimistic concurrency on persist
- Sortable, paged reminder queries
- Status-change notification fan-out
"""

__version__ = "0.1.0"
