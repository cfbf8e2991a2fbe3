"""Data models for aliases"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from zam.errors import MalformedInput

# Fixed-width UTC form so that text order matches time order in the database
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d\d:\d\d$|$)")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC 3339 text in UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Parse RFC 3339 text into an aware UTC datetime"""
    raw = (text or "").strip()
    if raw[-1:] in ("Z", "z"):
        raw = raw[:-1] + "+00:00"
    raw = FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw)
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise MalformedInput(f"Invalid timestamp: {text!r}") from None
    if value.tzinfo is None:
        raise MalformedInput(f"Timestamp has no UTC offset: {text!r}")
    return value.astimezone(timezone.utc)


def _eval_line(alias: str, command: str) -> str:
    return f"alias {alias}='{command}'"


@dataclass
class AliasDisplay:
    """The subset of an alias shown in listings and exports"""
    alias: str
    command: str
    description: str
    date_updated: datetime

    FIELDS = ("alias", "command", "description", "date_updated")

    def to_row(self) -> list:
        return [self.alias, self.command, self.description, format_timestamp(self.date_updated)]

    def __str__(self) -> str:
        return _eval_line(self.alias, self.command)


@dataclass
class Alias:
    """Represents a shell alias"""
    alias: str
    command: str
    description: str = ""
    shell: str = ""  # bash, zsh, fish, or empty when unknown
    date_created: Optional[datetime] = None
    date_updated: Optional[datetime] = None

    FIELDS = ("alias", "command", "shell", "description", "date_created", "date_updated")

    def __post_init__(self):
        if self.date_created is None:
            self.date_created = self.date_updated or utcnow()
        if self.date_updated is None:
            self.date_updated = self.date_created

    @classmethod
    def new(cls, alias: str, command: str, description: str = "", shell: str = "") -> "Alias":
        """Create an alias stamped with the current time"""
        now = utcnow()
        return cls(
            alias=alias,
            command=command,
            description=description,
            shell=shell or "",
            date_created=now,
            date_updated=now,
        )

    def update(self, command: str) -> None:
        """Replace the command and refresh the update timestamp"""
        self.command = command
        self.date_updated = utcnow()

    def display(self) -> AliasDisplay:
        return AliasDisplay(
            alias=self.alias,
            command=self.command,
            description=self.description,
            date_updated=self.date_updated,
        )

    def to_dict(self) -> dict:
        """Convert alias to dictionary for backups"""
        return {
            "alias": self.alias,
            "command": self.command,
            "shell": self.shell,
            "description": self.description,
            "date_created": format_timestamp(self.date_created),
            "date_updated": format_timestamp(self.date_updated),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alias":
        """Create alias from dictionary"""
        data = data.copy()
        for key in ("date_created", "date_updated"):
            value = data.get(key)
            if isinstance(value, str):
                data[key] = parse_timestamp(value)
            elif isinstance(value, datetime):
                # YAML loaders hand back datetimes for unquoted timestamps
                data[key] = parse_timestamp(value.isoformat())
            elif value is not None:
                raise MalformedInput(f"{key} must be a timestamp, got {value!r}")
        data["shell"] = data.get("shell") or ""
        data["description"] = data.get("description") or ""
        return cls(**data)

    def __str__(self) -> str:
        """String representation for shell eval"""
        return _eval_line(self.alias, self.command)
