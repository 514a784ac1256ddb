# =============================================================================
# Ledger Schema Migration Runner
# =============================================================================
# Orchestrates relational schema migrations for the granule ledger in a
# version-controlled, idempotent manner. Discovers migration files in the
# configured migrations directory (LEDGER_MIGRATIONS_DIR) and applies them
# sequentially, tracking applied versions in schema_migrations.
# =============================================================================

import sys
import time
import importlib.util
from pathlib import Path
from typing import Callable
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from granule_ledger.db import create_ledger_engine
from granule_ledger.models import LedgerDatabaseSettings


def discover_migrations(migrations_dir: Path) -> list[tuple[str, Path]]:
    """
    Discover migration files in the migrations directory.

    Migration files must match pattern: NNN_*.py where NNN is a zero-padded
    3-digit version number (e.g., 001, 002, 010).

    Args:
        migrations_dir: Path to migrations directory

    Returns:
        List of (version, file_path) tuples, sorted by version number

    Raises:
        ValueError: If migration files have invalid naming or duplicate versions
    """
    if not migrations_dir.exists():
        raise ValueError(f"Migrations directory does not exist: {migrations_dir}")

    migrations = []
    seen_versions = set()

    for file_path in migrations_dir.glob("*.py"):
        filename = file_path.name

        # Skip __init__.py and other non-migration files
        if filename.startswith("__"):
            continue

        if not filename[0:3].isdigit():
            print(f"Warning: Skipping file '{filename}' - does not start with 3-digit version", file=sys.stderr)
            continue

        version = filename[0:3]

        if version in seen_versions:
            raise ValueError(f"Duplicate migration version '{version}' found in '{filename}'")

        seen_versions.add(version)
        migrations.append((version, file_path))

    # Lexicographic sort works for zero-padded numbers
    migrations.sort(key=lambda x: x[0])

    return migrations


def load_migration_module(file_path: Path) -> tuple[str, Callable[[Connection], None]]:
    """
    Load a migration module and extract VERSION and up() function.

    Args:
        file_path: Path to migration Python file

    Returns:
        Tuple of (version, up_function)

    Raises:
        ValueError: If migration file doesn't conform to expected interface
        ImportError: If migration file cannot be imported
    """
    spec = importlib.util.spec_from_file_location("migration", file_path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load migration module from {file_path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if not hasattr(module, "VERSION"):
        raise ValueError(f"Migration '{file_path.name}' missing VERSION constant")

    version = module.VERSION
    if not isinstance(version, str):
        raise ValueError(f"Migration '{file_path.name}' VERSION must be a string, got {type(version).__name__}")

    if not hasattr(module, "up"):
        raise ValueError(f"Migration '{file_path.name}' missing up() function")

    up_func = module.up
    if not callable(up_func):
        raise ValueError(f"Migration '{file_path.name}' up must be callable, got {type(up_func).__name__}")

    return version, up_func


def ensure_schema_migrations_table(engine: Engine) -> None:
    """
    Ensure the schema_migrations table exists.

    Args:
        engine: Ledger database engine
    """
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            " version TEXT PRIMARY KEY,"
            " applied_at TIMESTAMP WITH TIME ZONE NOT NULL,"
            " duration_ms INTEGER NOT NULL"
            ")"
        ))


def get_applied_versions(engine: Engine) -> set[str]:
    """
    Get set of already-applied migration versions.

    Args:
        engine: Ledger database engine

    Returns:
        Set of version strings that have been applied
    """
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT version FROM schema_migrations"))
        return {row.version for row in rows}


def apply_migration(engine: Engine, version: str, up_func: Callable[[Connection], None]) -> None:
    """
    Apply a single migration and record it in schema_migrations.

    The migration and its bookkeeping row commit in the same transaction,
    so a failed migration leaves no trace and is retried on the next run.

    Args:
        engine: Ledger database engine
        version: Migration version string
        up_func: Migration up() function

    Raises:
        Exception: If migration fails (re-raised, migration not recorded)
    """
    start_time = time.time()

    try:
        with engine.begin() as conn:
            up_func(conn)

            duration_ms = int((time.time() - start_time) * 1000)
            conn.execute(
                text(
                    "INSERT INTO schema_migrations (version, applied_at, duration_ms) "
                    "VALUES (:version, :applied_at, :duration_ms)"
                ),
                {
                    "version": version,
                    "applied_at": datetime.now(timezone.utc),
                    "duration_ms": duration_ms,
                },
            )

        print(f"Applied migration {version} (took {duration_ms}ms)")

    except Exception as e:
        print(f"Migration {version} failed: {e}", file=sys.stderr)
        raise


def resolve_migrations_dir(configured: Path) -> Path:
    """
    Resolve the configured migrations directory.

    Relative paths are tried against the repository root first, then the
    container layout (/app).
    """
    if configured.is_absolute():
        return configured

    repo_root = Path(__file__).parent.parent.absolute()
    if (repo_root / configured).exists():
        return repo_root / configured
    return Path("/app") / configured


def run_migrations(engine: Engine, migrations_dir: Path) -> int:
    """
    Apply every pending migration in order.

    Returns:
        Number of migrations applied

    Raises:
        ValueError: If a migration's VERSION does not match its filename
    """
    ensure_schema_migrations_table(engine)

    migrations = discover_migrations(migrations_dir)
    print(f"Discovered {len(migrations)} migration(s)")

    applied_versions = get_applied_versions(engine)
    applied = 0

    for version, file_path in migrations:
        if version in applied_versions:
            print(f"Skipping migration {version}: already applied")
            continue

        print(f"Applying migration {version} from {file_path.name}...")

        migration_version, up_func = load_migration_module(file_path)

        if migration_version != version:
            raise ValueError(
                f"Migration '{file_path.name}' VERSION '{migration_version}' "
                f"does not match filename version '{version}'"
            )

        apply_migration(engine, version, up_func)
        applied += 1

    return applied


def main() -> int:
    """
    Main migration runner entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        settings = LedgerDatabaseSettings()
        engine = create_ledger_engine(settings.connection_string)

        try:
            migrations_dir = resolve_migrations_dir(settings.migrations_dir)
            if not discover_migrations(migrations_dir):
                print("No migrations found", file=sys.stderr)
                return 1

            run_migrations(engine, migrations_dir)

            print("All migrations applied successfully")
            return 0

        finally:
            engine.dispose()

    except Exception as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
