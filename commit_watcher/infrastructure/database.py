"""PostgreSQL implementation of the subscription registry."""

import logging
import psycopg2
from contextlib import contextmanager
from psycopg2.pool import ThreadedConnectionPool
from typing import Iterator, List, Optional
import os

from commit_watcher.domain.errors import PersistenceFailure
from commit_watcher.domain.watched_repository import WatchedRepository

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = """
    SELECT repository_id, subscribers, last_seen_commit, created_at, updated_at
    FROM watched_repositories
"""


def _row_to_repository(row) -> WatchedRepository:
    repository_id, subscribers, last_seen_commit, created_at, updated_at = row
    return WatchedRepository(
        repository_id=repository_id,
        subscribers=frozenset(subscribers or []),
        last_seen_commit=last_seen_commit or "",
        created_at=created_at,
        updated_at=updated_at,
    )


class PostgresSubscriptionRegistry:
    """Registry of watched repositories stored in PostgreSQL.
    
    Each watched repository is a single row; subscribers live in a TEXT[]
    column so that every mutation is a single-row statement and therefore
    atomic per record.
    """
    
    def __init__(self, connection_string: Optional[str] = None, min_connections: int = 1, max_connections: int = 5):
        """
        Initialize the registry.
        
        Args:
            connection_string: PostgreSQL connection string. If None, uses env vars.
            min_connections: Minimum pooled connections
            max_connections: Maximum pooled connections
        """
        if connection_string is None:
            db_host = os.getenv("POSTGRES_HOST", "localhost")
            db_port = os.getenv("POSTGRES_PORT", "5432")
            db_name = os.getenv("POSTGRES_DB", "commit_watcher")
            db_user = os.getenv("POSTGRES_USER", "postgres")
            db_password = os.getenv("POSTGRES_PASSWORD", "postgres")
            
            connection_string = (
                f"host={db_host} port={db_port} dbname={db_name} "
                f"user={db_user} password={db_password}"
            )
        
        self.connection_string = connection_string
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.pool: Optional[ThreadedConnectionPool] = None
    
    def connect(self):
        """Initialize connection pool."""
        try:
            self.pool = ThreadedConnectionPool(self.min_connections, self.max_connections, self.connection_string)
            logger.info("Database connection pool created")
        except psycopg2.Error as e:
            logger.error(f"Error creating connection pool: {e}")
            raise PersistenceFailure(f"Cannot connect to registry database: {e}") from e
    
    def close(self):
        """Close connection pool."""
        if self.pool:
            self.pool.closeall()
            self.pool = None
            logger.info("Database connection pool closed")
    
    def _get_connection(self):
        if not self.pool:
            self.connect()
        return self.pool.getconn()
    
    def _return_connection(self, conn):
        if self.pool:
            self.pool.putconn(conn)
    
    @contextmanager
    def _transaction(self, operation: str) -> Iterator:
        """Yield a cursor inside one transaction, committing on success."""
        try:
            conn = self._get_connection()
        except psycopg2.Error as e:
            logger.error(f"No registry connection available for {operation}: {e}")
            raise PersistenceFailure(f"{operation} failed: {e}") from e
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Error during {operation}: {e}")
            raise PersistenceFailure(f"{operation} failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._return_connection(conn)
    
    def initialize_schema(self):
        """Create the registry table if it doesn't exist."""
        with self._transaction("schema initialization") as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS watched_repositories (
                    repository_id VARCHAR(512) PRIMARY KEY,
                    subscribers TEXT[] NOT NULL DEFAULT '{}',
                    last_seen_commit VARCHAR(64) NOT NULL DEFAULT '',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
                
                CREATE INDEX IF NOT EXISTS idx_watched_repositories_subscribers
                    ON watched_repositories USING GIN (subscribers);
            """)
        logger.info("Database schema initialized")
    
    def find_all(self) -> List[WatchedRepository]:
        """Snapshot every watched repository, one consistent row per record."""
        with self._transaction("loading watched repositories") as cur:
            cur.execute(_SELECT_COLUMNS + " ORDER BY repository_id")
            rows = cur.fetchall()
        return [_row_to_repository(row) for row in rows]
    
    def find_by_repository_id(self, repository_id: str) -> Optional[WatchedRepository]:
        with self._transaction("loading watched repository") as cur:
            cur.execute(_SELECT_COLUMNS + " WHERE repository_id = %s", (repository_id,))
            row = cur.fetchone()
        return _row_to_repository(row) if row else None
    
    def find_by_subscriber(self, subscriber_id: str) -> List[WatchedRepository]:
        with self._transaction("loading subscriber watches") as cur:
            cur.execute(
                _SELECT_COLUMNS + " WHERE %s = ANY(subscribers) ORDER BY repository_id",
                (subscriber_id,),
            )
            rows = cur.fetchall()
        return [_row_to_repository(row) for row in rows]
    
    def upsert_subscriber(self, repository_id: str, subscriber_id: str) -> bool:
        """
        Add a subscriber, creating the record on first registration.
        
        The conflict branch only fires when the subscriber is not already in
        the array, so no row is returned for a repeated subscription.
        
        Returns:
            True if the subscriber was added, False if it was already present
        """
        with self._transaction("upserting subscriber") as cur:
            cur.execute(
                """
                INSERT INTO watched_repositories (repository_id, subscribers)
                VALUES (%s, ARRAY[%s]::TEXT[])
                ON CONFLICT (repository_id)
                DO UPDATE SET
                    subscribers = array_append(watched_repositories.subscribers, EXCLUDED.subscribers[1]),
                    updated_at = CURRENT_TIMESTAMP
                WHERE NOT (EXCLUDED.subscribers[1] = ANY(watched_repositories.subscribers))
                RETURNING repository_id
                """,
                (repository_id, subscriber_id),
            )
            added = cur.fetchone() is not None
        if added:
            logger.info(f"Subscriber {subscriber_id} now watches {repository_id}")
        return added
    
    def remove_subscriber(self, repository_id: str, subscriber_id: str) -> bool:
        """
        Remove a subscriber, deleting the record when nobody is left.
        
        Returns:
            True if the subscriber was removed, False if it was not watching
        """
        with self._transaction("removing subscriber") as cur:
            cur.execute(
                """
                UPDATE watched_repositories
                SET subscribers = array_remove(subscribers, %s),
                    updated_at = CURRENT_TIMESTAMP
                WHERE repository_id = %s AND %s = ANY(subscribers)
                RETURNING cardinality(subscribers)
                """,
                (subscriber_id, repository_id, subscriber_id),
            )
            row = cur.fetchone()
            if row is None:
                return False
            # The row stays locked until commit, so the emptiness check cannot race.
            if row[0] == 0:
                cur.execute(
                    "DELETE FROM watched_repositories WHERE repository_id = %s AND cardinality(subscribers) = 0",
                    (repository_id,),
                )
                logger.info(f"Last subscriber left {repository_id}, record deleted")
        logger.info(f"Subscriber {subscriber_id} stopped watching {repository_id}")
        return True
    
    def advance_commit_marker(self, repository_id: str, commit_id: str) -> bool:
        """
        Overwrite the last seen commit of a repository.
        
        Returns:
            False if the record no longer exists
        """
        with self._transaction("advancing commit marker") as cur:
            cur.execute(
                """
                UPDATE watched_repositories
                SET last_seen_commit = %s, updated_at = CURRENT_TIMESTAMP
                WHERE repository_id = %s
                """,
                (commit_id, repository_id),
            )
            updated = cur.rowcount > 0
        if not updated:
            logger.warning(f"Repository {repository_id} is no longer watched, marker {commit_id} discarded")
        return updated
    
    def get_repository_count(self) -> int:
        """Get the total number of watched repositories."""
        with self._transaction("counting watched repositories") as cur:
            cur.execute("SELECT COUNT(*) FROM watched_repositories")
            return cur.fetchone()[0]
