"""Roster package for parish ministers' monthly availability.

Modules:
- config: load and validate configuration (JSON or YAML)
- errors: error taxonomy surfaced to callers
- domain: SQLAlchemy models, database helpers and repositories
- engine: window policy, block overlay, capacity ledger, drafts and commits
- services: time helpers, administrative operations and reports
- io: CSV import of the admin-managed catalog
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "errors",
    "domain",
    "engine",
    "services",
    "io",
    "cli",
]
