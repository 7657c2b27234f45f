"""
Shared, cross-cutting code for the catalog API.

`core/` holds the building blocks every feature uses (DB wiring, migrations,
settings, logging, error mapping, paging). Feature-specific SQL and business
rules stay in the feature packages (`authors/`, `books/`, ...).
"""
