"""
Package metadata store.

Tracks every stored package version and its listing state in a SQLite
database. Uniqueness of (id, version) is enforced by the database so
concurrent publishes of the same identity cannot both succeed.
"""

import logging
import sqlite3
import threading
from pathlib import Path

from depot.core.models import (
    PackageAddResult,
    PackageMetadata,
    PackageState,
    PackageVersion,
)

logger = logging.getLogger(__name__)


class SqlitePackageService:
    """
    Metadata store backed by SQLite.

    Uses one connection per thread since handler calls run in a thread pool.
    """

    def __init__(self, database_path: Path | None = None):
        """
        Initialize the metadata store.

        Args:
            database_path: Path to the SQLite database (default: var/depot.db)
        """
        self._database_path = database_path or Path("var/depot.db")
        self._database_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local SQLite connection."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self._database_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _init_schema(self) -> None:
        """Initialize the packages table."""
        conn = self._get_connection()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS packages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                package_id TEXT NOT NULL,
                lower_id TEXT NOT NULL,
                version TEXT NOT NULL,
                lower_version TEXT NOT NULL,
                original_version TEXT NOT NULL,
                authors TEXT,
                description TEXT,
                is_prerelease INTEGER NOT NULL DEFAULT 0,
                listed INTEGER NOT NULL DEFAULT 1,
                content_hash TEXT,
                size_bytes INTEGER,
                published_at TEXT NOT NULL,
                UNIQUE (lower_id, lower_version)
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_lower_id ON packages(lower_id)")
        conn.commit()

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> PackageMetadata:
        return PackageMetadata(
            package_id=row["package_id"],
            version=row["version"],
            original_version=row["original_version"],
            authors=row["authors"],
            description=row["description"],
            is_prerelease=bool(row["is_prerelease"]),
            state=PackageState.LISTED if row["listed"] else PackageState.UNLISTED,
            content_hash=row["content_hash"],
            size_bytes=row["size_bytes"],
            published_at=row["published_at"],
        )

    def add(self, package: PackageMetadata) -> PackageAddResult:
        """
        Add metadata for a new package version.

        Args:
            package: Metadata to store

        Returns:
            PackageAddResult.PACKAGE_ALREADY_EXISTS if the version is already stored
        """
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO packages (
                        package_id, lower_id, version, lower_version,
                        original_version, authors, description, is_prerelease,
                        listed, content_hash, size_bytes, published_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        package.package_id,
                        package.lower_id,
                        package.version,
                        package.version.lower(),
                        package.original_version,
                        package.authors,
                        package.description,
                        1 if package.is_prerelease else 0,
                        1 if package.listed else 0,
                        package.content_hash,
                        package.size_bytes,
                        package.published_at,
                    ),
                )
        except sqlite3.IntegrityError:
            return PackageAddResult.PACKAGE_ALREADY_EXISTS

        return PackageAddResult.SUCCESS

    def exists(self, package_id: str, version: PackageVersion) -> bool:
        """Check whether a package version is stored, listed or not."""
        return self.find(package_id, version) is not None

    def find(self, package_id: str, version: PackageVersion) -> PackageMetadata | None:
        """Find the metadata of a package version."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM packages WHERE lower_id = ? AND lower_version = ?",
            (package_id.lower(), version.normalized.lower()),
        ).fetchone()
        return self._row_to_metadata(row) if row else None

    def _set_listed(
        self, package_id: str, version: PackageVersion, listed: bool, only_if_changed: bool = False
    ) -> int:
        conn = self._get_connection()
        query = "UPDATE packages SET listed = ? WHERE lower_id = ? AND lower_version = ?"
        if only_if_changed:
            query += " AND listed != ?"
        params: tuple = (1 if listed else 0, package_id.lower(), version.normalized.lower())
        if only_if_changed:
            params += (1 if listed else 0,)
        with conn:
            cursor = conn.execute(query, params)
        return cursor.rowcount

    def unlist(self, package_id: str, version: PackageVersion) -> bool:
        """
        Hide a package version from listings.

        Returns:
            False if the version does not exist or is already unlisted
        """
        found = self._set_listed(package_id, version, listed=False, only_if_changed=True) > 0
        if found:
            logger.info(
                "Unlisted package",
                extra={"event": "package_unlisted", "package_id": package_id, "version": version.normalized},
            )
        return found

    def relist(self, package_id: str, version: PackageVersion) -> bool:
        """
        Make a package version visible in listings again.

        Relisting an already listed version succeeds.

        Returns:
            False if the version does not exist
        """
        found = self._set_listed(package_id, version, listed=True) > 0
        if found:
            logger.info(
                "Relisted package",
                extra={"event": "package_relisted", "package_id": package_id, "version": version.normalized},
            )
        return found

    def hard_delete(self, package_id: str, version: PackageVersion) -> bool:
        """
        Remove a package version's metadata.

        Returns:
            False if the version does not exist
        """
        conn = self._get_connection()
        with conn:
            cursor = conn.execute(
                "DELETE FROM packages WHERE lower_id = ? AND lower_version = ?",
                (package_id.lower(), version.normalized.lower()),
            )
        return cursor.rowcount > 0
