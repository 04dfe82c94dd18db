from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict

# Documents are schemaless: only the fields the handlers rely on are typed,
# anything else the client sends is stored as-is.


class Document(BaseModel):
    model_config = ConfigDict(extra="allow")


class UserIn(Document):
    email: str


class TaskIn(Document):
    user: Any = None
    category: Any = None
    title: Any = None
    description: Any = None
    timestamp: Any = None


class TaskUpdate(Document):
    user: Any = None
    category: Any = None
    title: Any = None
    description: Any = None
    modified: Any = None


class CategoryMove(Document):
    category: Any


class Envelope(BaseModel):
    success: bool
    error: bool
    message: str
    data: Any = None
    type: Optional[Literal["existing", "new"]] = None


def coerce_date(value: Any) -> Optional[datetime]:
    """Coerce a client-supplied date the way `new Date(value)` would.

    Numbers are epoch milliseconds, strings are ISO-8601. A date-time with no
    offset is local time. Anything that does not parse is an invalid date,
    stored as None.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            return parsed
        # Date-only forms are UTC, date-times without an offset are local time
        if len(text) <= 10:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def to_document(model: BaseModel) -> Dict[str, Any]:
    """Fields the client actually sent, extra fields included."""
    return model.model_dump(exclude_unset=True)
