import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from zam.errors import DuplicateKey, MalformedInput, NotFound, StorageUnavailable
from zam.models import Alias, AliasDisplay, format_timestamp, parse_timestamp

MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS aliases (
  alias TEXT PRIMARY KEY,
  command TEXT NOT NULL,
  shell TEXT NOT NULL DEFAULT '',
  description TEXT NOT NULL,
  date_created TEXT NOT NULL,
  date_updated TEXT NOT NULL
)
"""


class AliasStorage:
    """Handle storage and retrieval of aliases in a SQLite file"""

    def __init__(self, db_path: Union[str, Path]):
        """Open (creating if absent) the database at db_path and ensure the schema"""
        self.db_path = db_path
        self._in_batch = False
        try:
            if str(db_path) != MEMORY:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(db_path))
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"Cannot open database {db_path}: {e}") from e

        self.conn.row_factory = sqlite3.Row
        try:
            self.conn.execute(SCHEMA)
            self.conn.commit()
            columns = {row["name"] for row in self.conn.execute("PRAGMA table_info(aliases)")}
        except sqlite3.Error as e:
            self.conn.close()
            raise StorageUnavailable(f"Cannot initialize database {db_path}: {e}") from e
        # Tables written by older zam releases have no shell column
        self.has_shell = "shell" in columns

    def __enter__(self) -> "AliasStorage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the database handle"""
        self.conn.close()

    @contextmanager
    def batch(self) -> Iterator["AliasStorage"]:
        """Group writes so they commit together or not at all"""
        if self._in_batch:
            yield self
            return

        self._in_batch = True
        try:
            yield self
            self._in_batch = False
            self._commit()
        except BaseException:
            self._in_batch = False
            self.conn.rollback()
            raise

    def _commit(self) -> None:
        if self._in_batch:
            return
        try:
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Commit failed: {e}") from e

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Database error: {e}") from e

    @staticmethod
    def _to_alias(row: sqlite3.Row) -> Alias:
        return Alias(
            alias=row["alias"],
            command=row["command"],
            shell=row["shell"] if "shell" in row.keys() else "",
            description=row["description"],
            date_created=parse_timestamp(row["date_created"]),
            date_updated=parse_timestamp(row["date_updated"]),
        )

    def add(self, alias: Alias) -> None:
        """Insert a new alias, raising DuplicateKey if the name is taken"""
        values = {
            "alias": alias.alias,
            "command": alias.command,
            "shell": alias.shell or "",
            "description": alias.description,
            "date_created": format_timestamp(alias.date_created),
            "date_updated": format_timestamp(alias.date_updated),
        }
        if not self.has_shell:
            del values["shell"]
        try:
            self.conn.execute(
                f"INSERT INTO aliases ({', '.join(values)}) VALUES ({', '.join('?' * len(values))})",
                tuple(values.values()),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e) or "PRIMARY KEY" in str(e):
                raise DuplicateKey(alias.alias) from e
            raise MalformedInput(f"Invalid alias '{alias.alias}': {e}") from e
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Database error: {e}") from e
        self._commit()

    def update(self, alias: Alias) -> None:
        """Overwrite command, description and update time of a stored alias"""
        cursor = self._execute(
            "UPDATE aliases SET command = ?, description = ?, date_updated = ? WHERE alias = ?",
            (alias.command, alias.description, format_timestamp(alias.date_updated), alias.alias),
        )
        if cursor.rowcount == 0:
            raise NotFound(alias.alias)
        self._commit()

    def remove(self, name: str) -> bool:
        """Remove an alias, return True if it existed"""
        cursor = self._execute("DELETE FROM aliases WHERE alias = ?", (name,))
        self._commit()
        return cursor.rowcount > 0

    def get(self, name: str) -> Optional[Alias]:
        """Get an alias by name"""
        row = self._execute("SELECT * FROM aliases WHERE alias = ?", (name,)).fetchone()
        return self._to_alias(row) if row else None

    def list_all(self) -> List[AliasDisplay]:
        """Get all aliases as display records, ordered by name"""
        rows = self._execute(
            "SELECT alias, command, description, date_updated FROM aliases ORDER BY alias ASC"
        ).fetchall()
        return [
            AliasDisplay(
                alias=row["alias"],
                command=row["command"],
                description=row["description"],
                date_updated=parse_timestamp(row["date_updated"]),
            )
            for row in rows
        ]

    def list_records(self) -> List[Alias]:
        """Get all aliases with every field, ordered by name"""
        rows = self._execute("SELECT * FROM aliases ORDER BY alias ASC").fetchall()
        return [self._to_alias(row) for row in rows]

    def count(self) -> int:
        return self._execute("SELECT COUNT(*) FROM aliases").fetchone()[0]
