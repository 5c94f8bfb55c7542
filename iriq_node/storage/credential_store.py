"""
Credential persistence in a local SQLite file.
Holds a single namespaced {token, expiry} record that survives reboots.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from .. import config
from .models import Credential

logger = logging.getLogger(__name__)


class CredentialStore:
    """Durable store for the device bearer credential.

    No validity logic lives here; the session manager decides whether a
    loaded credential is still usable.
    """

    def __init__(self, db_path: str = None, namespace: str = "auth"):
        self.db_path = Path(db_path or config.CREDENTIAL_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.namespace = namespace
        self._init_schema()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS credentials (
                    namespace TEXT PRIMARY KEY,
                    token TEXT NOT NULL,
                    expiry INTEGER NOT NULL
                )
            """)

    def load(self) -> Optional[Credential]:
        """Return the stored credential, or None if never authenticated."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT token, expiry FROM credentials WHERE namespace = ?",
                (self.namespace,),
            ).fetchone()

        if row is None or not row["token"]:
            return None
        return Credential(token=row["token"], expiry=row["expiry"])

    def save(self, credential: Credential) -> None:
        """Persist a credential, replacing any previous one."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO credentials (namespace, token, expiry)
                VALUES (?, ?, ?)
            """, (self.namespace, credential.token, int(credential.expiry)))
        logger.debug(f"Credential saved (namespace={self.namespace}, expiry={credential.expiry})")

    def clear(self) -> None:
        """Remove the stored credential."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM credentials WHERE namespace = ?", (self.namespace,))
        logger.debug(f"Credential cleared (namespace={self.namespace})")
