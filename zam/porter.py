import csv
import io
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Union

import yaml

from zam.errors import MalformedInput, ZamIOError
from zam.models import Alias, AliasDisplay, parse_timestamp, utcnow, format_timestamp
from zam.storage import AliasStorage

FORMATS = ("csv", "json", "yaml")
REQUIRED_COLUMNS = {"alias", "command", "description", "date_updated"}


def encode_csv(aliases: Iterable[AliasDisplay]) -> str:
    """Encode display records as CSV text with a header row"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(AliasDisplay.FIELDS)
    for alias in aliases:
        writer.writerow(alias.to_row())
    return buffer.getvalue()


def _checked(alias: Alias, where: str) -> Alias:
    if alias.date_created > alias.date_updated:
        raise MalformedInput(f"{where}: date_created is later than date_updated")
    return alias


def decode_csv(text: str) -> Iterator[Alias]:
    """Decode CSV text into aliases, one per data row in file order.

    The header row is matched by column name, so column order does not
    matter. ``shell`` is optional and ``date_created`` falls back to
    ``date_updated`` so that display exports can be imported again.
    """
    reader = csv.DictReader(io.StringIO(text))
    try:
        header = reader.fieldnames
        if not header:
            raise MalformedInput("CSV input has no header row")
        missing = REQUIRED_COLUMNS - set(header)
        if missing:
            raise MalformedInput(f"CSV header missing columns: {', '.join(sorted(missing))}")

        for row in reader:
            where = f"line {reader.line_num}"
            if None in row or None in row.values():
                raise MalformedInput(f"{where}: expected {len(header)} fields")
            try:
                date_updated = parse_timestamp(row["date_updated"])
                date_created = (
                    parse_timestamp(row["date_created"]) if row.get("date_created") else date_updated
                )
            except MalformedInput as e:
                raise MalformedInput(f"{where}: {e}") from None
            yield _checked(
                Alias(
                    alias=row["alias"],
                    command=row["command"],
                    shell=row.get("shell") or "",
                    description=row["description"],
                    date_created=date_created,
                    date_updated=date_updated,
                ),
                where,
            )
    except csv.Error as e:
        raise MalformedInput(f"line {reader.line_num}: {e}") from e


def decode_backup(data: Any) -> Iterator[Alias]:
    """Decode a JSON/YAML backup document into aliases"""
    if not isinstance(data, dict) or "aliases" not in data:
        raise MalformedInput("Invalid format: missing 'aliases' field")
    records = data["aliases"] or []
    if not isinstance(records, list):
        raise MalformedInput("Invalid format: 'aliases' must be a list")

    for index, alias_data in enumerate(records, start=1):
        where = f"record {index}"
        if not isinstance(alias_data, dict):
            raise MalformedInput(f"{where}: expected a mapping")
        try:
            alias = Alias.from_dict(alias_data)
        except (KeyError, TypeError) as e:
            raise MalformedInput(f"{where}: {e}") from e
        except MalformedInput as e:
            raise MalformedInput(f"{where}: {e}") from None
        yield _checked(alias, where)


class AliasPorter:
    """Handle import and export of aliases"""

    def __init__(self, storage: AliasStorage):
        self.storage = storage

    def export_to_text(self) -> str:
        """CSV snapshot of every alias, ordered by name"""
        return encode_csv(self.storage.list_all())

    def export_to_dict(self) -> Dict[str, Any]:
        """Full-record backup document"""
        aliases = self.storage.list_records()
        return {
            "version": "1.0",
            "exported_at": format_timestamp(utcnow()),
            "count": len(aliases),
            "aliases": [alias.to_dict() for alias in aliases],
        }

    def export_to_file(self, filepath: Union[str, Path], format: str = "csv") -> int:
        """Export aliases to a file, overwriting it, and return how many were written"""
        if format not in FORMATS:
            raise ValueError(f"Unknown export format: {format}")

        filepath = Path(filepath)
        try:
            if format == "csv":
                aliases = self.storage.list_all()
                with open(filepath, "w", newline="", encoding="utf-8") as f:
                    f.write(encode_csv(aliases))
                return len(aliases)

            data = self.export_to_dict()
            with open(filepath, "w", encoding="utf-8") as f:
                if format == "yaml":
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
                else:
                    json.dump(data, f, indent=2)
            return data["count"]
        except OSError as e:
            raise ZamIOError(f"Export failed: {e}") from e

    def _decode_file(self, filepath: Path) -> Iterator[Alias]:
        try:
            with open(filepath, "r", newline="", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ZamIOError(f"Import failed: {e}") from e

        if filepath.suffix in (".yaml", ".yml"):
            try:
                return decode_backup(yaml.safe_load(content))
            except yaml.YAMLError as e:
                raise MalformedInput(f"Invalid YAML: {e}") from e
        if filepath.suffix == ".json":
            try:
                return decode_backup(json.loads(content))
            except json.JSONDecodeError as e:
                raise MalformedInput(f"Invalid JSON: {e}") from e
        return decode_csv(content)

    def import_from_file(self, filepath: Union[str, Path], atomic: bool = False) -> int:
        """Add every alias in the file in order and return how many were imported.

        Stops at the first bad or duplicate row. Rows added before the
        failure stay stored unless ``atomic`` is set.
        """
        aliases = self._decode_file(Path(filepath))
        if atomic:
            with self.storage.batch():
                return self._add_all(aliases)
        return self._add_all(aliases)

    def _add_all(self, aliases: Iterable[Alias]) -> int:
        imported = 0
        for alias in aliases:
            self.storage.add(alias)
            imported += 1
        return imported

    def preview(self, filepath: Union[str, Path]) -> List[Alias]:
        """Decode a file without touching the store"""
        return list(self._decode_file(Path(filepath)))
