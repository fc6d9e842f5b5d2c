"""
NoteSync Backend — Application Package
========================================

What: Notes with optional images, kept consistent across a record service and
      an object store.

Architecture Note:
    ┌─────────────────────────────────────┐
    │     Routes (presentation boundary)  │  ← HTTP, form data, identity
    ├─────────────────────────────────────┤
    │   NoteSynchronizer (per user)       │  ← ordering & consistency rules
    ├──────────────────┬──────────────────┤
    │  RecordGateway   │  StorageGateway  │  ← narrow service contracts
    ├──────────────────┼──────────────────┤
    │  SQLAlchemy      │  local object    │
    │  (notes table)   │  store (aiofiles)│
    └──────────────────┴──────────────────┘
"""

__version__ = "1.0.0"
