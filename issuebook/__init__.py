"""Issuebook core package.

Modules:
- models: Issue/Tag SQLModel tables and change tracking
- store: entity store (working set, notifications, save)
- query: filter-to-query compilation and ordering
- tags: tag suggestions and missing tags
- scheduler: debounced saves
- reconcile: bulk deletes and remote change merging
- monitor: Watchdog-based remote change detection
- controller: coordinator exposing the public operations
- config: INI parsing and config object
"""

__version__ = "0.1.0"
