"""
Schema migration runner.

Migrations live in `db/migrations/` as dbmate-style SQL files:

    20250101000100_create_authors.sql

    -- migrate:up
    CREATE TABLE authors (...);

    -- migrate:down
    DROP TABLE authors;

The version is the file-name prefix before the first underscore. Applied
versions are recorded in `schema_migrations`, the same table dbmate uses, so
either tool can be pointed at the database. Only the up direction is run here.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import asyncpg

from . import db, settings
from .log import configure_logging

logger = logging.getLogger(__name__)

# Arbitrary constant; serializes concurrent runners (several app replicas).
ADVISORY_LOCK_KEY = 72_431_905

_FILENAME_RE = re.compile(r"^(?P<version>\d+)_(?P<name>[A-Za-z0-9_\-]+)\.sql$")
_MARKER_RE = re.compile(r"^--\s*migrate:(?P<direction>up|down)(?P<options>.*)$", re.MULTILINE)


class MigrationError(RuntimeError):
    pass


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    path: Path
    up_sql: str
    transactional: bool = True


def parse_migration(path: Path) -> Migration:
    match = _FILENAME_RE.match(path.name)
    if match is None:
        raise MigrationError(f"Invalid migration file name: {path.name}")

    text = path.read_text(encoding="utf-8")
    markers = list(_MARKER_RE.finditer(text))
    up_markers = [m for m in markers if m.group("direction") == "up"]
    if len(up_markers) != 1:
        raise MigrationError(f"{path.name}: expected exactly one '-- migrate:up' section")

    up = up_markers[0]
    end = len(text)
    for marker in markers:
        if marker.start() > up.start():
            end = marker.start()
            break

    up_sql = text[up.end():end].strip()
    if not up_sql:
        raise MigrationError(f"{path.name}: '-- migrate:up' section is empty")

    options = up.group("options").split()
    return Migration(
        version=match.group("version"),
        name=match.group("name"),
        path=path,
        up_sql=up_sql,
        transactional="transaction:false" not in options,
    )


def discover(directory: Path | None = None) -> list[Migration]:
    """
    Load all migrations from `directory`, ordered by version.
    """
    directory = directory or settings.migrations_dir()
    if not directory.is_dir():
        raise MigrationError(f"Migrations directory not found: {directory}")

    migrations = [parse_migration(p) for p in sorted(directory.glob("*.sql"))]
    migrations.sort(key=lambda m: int(m.version))

    seen: dict[str, Path] = {}
    for migration in migrations:
        if migration.version in seen:
            raise MigrationError(
                f"Duplicate migration version {migration.version}: "
                f"{seen[migration.version].name}, {migration.path.name}"
            )
        seen[migration.version] = migration.path
    return migrations


def pending(applied: Iterable[str], migrations: Sequence[Migration]) -> list[Migration]:
    applied_set = set(applied)
    return [m for m in migrations if m.version not in applied_set]


async def _ensure_history_table(conn: asyncpg.Connection) -> None:
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version VARCHAR(128) PRIMARY KEY
        )
        """
    )


async def _applied_versions(conn: asyncpg.Connection) -> list[str]:
    rows = await conn.fetch("SELECT version FROM schema_migrations ORDER BY version")
    return [str(r["version"]) for r in rows]


async def _apply(conn: asyncpg.Connection, migration: Migration) -> None:
    if migration.transactional:
        async with conn.transaction():
            await conn.execute(migration.up_sql)
            await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", migration.version)
        return

    await conn.execute(migration.up_sql)
    await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", migration.version)


async def migrate(dsn: str | None = None, directory: Path | None = None) -> list[str]:
    """
    Apply every pending migration in version order.

    Returns the versions applied by this call.
    """
    migrations = discover(directory)
    conn = await asyncpg.connect(dsn=dsn or db.database_url())
    try:
        await conn.execute("SELECT pg_advisory_lock($1)", ADVISORY_LOCK_KEY)
        try:
            await _ensure_history_table(conn)
            todo = pending(await _applied_versions(conn), migrations)
            if not todo:
                logger.info("migrations_up_to_date count=%s", len(migrations))
                return []

            applied: list[str] = []
            for migration in todo:
                logger.info("migration_apply version=%s name=%s", migration.version, migration.name)
                try:
                    await _apply(conn, migration)
                except asyncpg.PostgresError as exc:
                    raise MigrationError(
                        f"Migration {migration.version}_{migration.name} failed: {exc}"
                    ) from exc
                applied.append(migration.version)
            logger.info("migrations_applied count=%s", len(applied))
            return applied
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", ADVISORY_LOCK_KEY)
    finally:
        await conn.close()


async def status(dsn: str | None = None, directory: Path | None = None) -> list[dict]:
    """
    Report each known migration and whether it has been applied.
    """
    migrations = discover(directory)
    conn = await asyncpg.connect(dsn=dsn or db.database_url())
    try:
        await _ensure_history_table(conn)
        applied = set(await _applied_versions(conn))
    finally:
        await conn.close()

    return [
        {"version": m.version, "name": m.name, "applied": m.version in applied}
        for m in migrations
    ]


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="library-catalog-migrate",
        description="Apply or inspect database schema migrations.",
    )
    parser.add_argument("command", nargs="?", choices=("up", "status"), default="up")
    parser.add_argument("--dir", type=Path, default=None, help="Migrations directory")
    args = parser.parse_args(argv)

    configure_logging()
    if args.command == "status":
        for row in asyncio.run(status(directory=args.dir)):
            mark = "X" if row["applied"] else " "
            print(f"[{mark}] {row['version']}_{row['name']}")
        return 0

    asyncio.run(migrate(directory=args.dir))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
