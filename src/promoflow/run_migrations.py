"""Apply the SQL migrations that create the PostgreSQL document store.

Each ``*.sql`` file in the package's ``migrations/`` directory runs once,
in filename order, and is recorded in ``schema_migrations``.
"""

import argparse
import glob
import logging
import os
from typing import Any, Dict, List, Optional, Set

import psycopg2

from promoflow.config import LOG_FORMAT, Settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")


def pending_migrations(migration_files: List[str], applied: Set[str]) -> List[str]:
    return [path for path in migration_files if os.path.basename(path) not in applied]


class MigrationRunner:
    """Applies migration files over one open psycopg2 connection."""

    def __init__(self, conn, migrations_dir: str = MIGRATIONS_DIR):
        self.conn = conn
        self.migrations_dir = migrations_dir

    def migration_files(self) -> List[str]:
        return sorted(glob.glob(os.path.join(self.migrations_dir, "*.sql")))

    def ensure_table(self) -> None:
        with self.conn.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    id SERIAL PRIMARY KEY,
                    filename VARCHAR(255) UNIQUE NOT NULL,
                    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        self.conn.commit()

    def applied(self) -> Set[str]:
        with self.conn.cursor() as cur:
            cur.execute("SELECT filename FROM schema_migrations")
            return {row[0] for row in cur.fetchall()}

    def pending(self) -> List[str]:
        self.ensure_table()
        return pending_migrations(self.migration_files(), self.applied())

    def apply(self, path: str) -> None:
        """Run one file and record it in the same transaction."""
        filename = os.path.basename(path)
        with open(path, "r", encoding="utf-8") as f:
            sql = f.read()

        with self.conn.cursor() as cur:
            if sql.strip():
                cur.execute(sql)
            else:
                logger.info(f"Empty migration recorded without running: {filename}")
            cur.execute("INSERT INTO schema_migrations (filename) VALUES (%s)", (filename,))
        self.conn.commit()
        logger.info(f"✅ Applied: {filename}")

    def run(self) -> int:
        pending = self.pending()
        if not pending:
            logger.info("All migrations already applied.")
            return 0

        logger.info(f"Applying {len(pending)} pending migration(s)...")
        for path in pending:
            try:
                self.apply(path)
            except psycopg2.Error as e:
                self.conn.rollback()
                logger.error(f"❌ Migration failed: {os.path.basename(path)}: {e}")
                raise
        return len(pending)


def run_migrations(db_config: Optional[Dict[str, Any]] = None, migrations_dir: str = MIGRATIONS_DIR) -> int:
    """Apply pending migrations and return how many ran."""
    if not glob.glob(os.path.join(migrations_dir, "*.sql")):
        logger.info("No migration files found.")
        return 0

    conn = psycopg2.connect(**(db_config or Settings.from_env().db_config))
    try:
        return MigrationRunner(conn, migrations_dir).run()
    finally:
        conn.close()


def main():
    parser = argparse.ArgumentParser(description="Apply PromoFlow database migrations")
    parser.add_argument("--status", action="store_true", help="list pending migrations without applying them")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if not args.status:
        run_migrations()
        return

    conn = psycopg2.connect(**Settings.from_env().db_config)
    try:
        pending = MigrationRunner(conn).pending()
    finally:
        conn.close()
    for path in pending:
        print(f"pending: {os.path.basename(path)}")
    if not pending:
        print("up to date")


if __name__ == "__main__":
    main()
