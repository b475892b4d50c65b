from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from hibalogique.core.errors import CorruptDataError

EXPORT_SCHEMA = "hibalogique_quotes_backup_v1"

Country = Literal["Canada", "Other"]

# Numeric form fields keep whatever the user typed; the calculator coerces.
Numeric = Optional[Union[float, str]]


def new_id() -> str:
    return uuid4().hex


def _text(v: Any) -> Any:
    if v is None:
        return ""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class _Record(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Quote(_Record):
    """Header of one quotation: client/contact data plus pricing policy."""

    quote_number: str = Field("", alias="quoteNumber")
    quote_date: Optional[date] = Field(None, alias="quoteDate")
    valid_until: Optional[date] = Field(None, alias="validUntil")
    sponsor: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    contact: str = ""
    country: Country = "Canada"
    province: str = "QC"
    discount_pct: Numeric = Field(0.0, alias="discountPct")

    @field_validator(
        "quote_number", "sponsor", "address", "phone", "email", "contact",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        return _text(v)

    @field_validator("quote_date", "valid_until", mode="before")
    @classmethod
    def _blank_date(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            # "2025-01-01T00:00:00.000Z" -> "2025-01-01"
            if "T" in v:
                return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("country", mode="before")
    @classmethod
    def _country(cls, v: Any) -> Any:
        s = str(v or "").strip()
        if not s or s.lower() == "canada":
            return "Canada"
        return "Other"

    @field_validator("province", mode="before")
    @classmethod
    def _province(cls, v: Any) -> str:
        return str(v or "").strip().upper()


class LineItem(_Record):
    id: str = Field(default_factory=new_id)
    test_type: str = Field("", alias="testType")
    description: str = ""
    panel: str = ""
    time_days: Numeric = Field("", alias="timeDays")
    unit_price: Numeric = Field("", alias="unitPrice")
    samples: Numeric = ""

    @field_validator("id", mode="before")
    @classmethod
    def _ensure_id(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return new_id()
        return str(v)

    @field_validator("test_type", "description", "panel", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        return _text(v)


class Snapshot(BaseModel):
    """
    Saved copy of a quote + its lines, with totals cached at save time.
    Only the header reference may change afterwards (rename), and that
    happens by building a new Snapshot.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str
    saved_at: datetime = Field(alias="savedAt")
    subtotal: float = 0.0
    taxes: float = 0.0
    total: float = 0.0
    quote: Quote
    lines: list[LineItem]

    @field_validator("subtotal", "taxes", "total", mode="before")
    @classmethod
    def _zero_if_missing(cls, v: Any) -> Any:
        return 0.0 if v is None or v == "" else v

    @property
    def reference(self) -> str:
        return self.quote.quote_number

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class LastSaved(_Record):
    quote: Quote = Field(default_factory=Quote)
    lines: list[LineItem] = Field(default_factory=list)
    saved_at: Optional[datetime] = Field(None, alias="savedAt")


class ExportBundle(_Record):
    schema_id: str = Field(EXPORT_SCHEMA, alias="schema")
    exported_at: datetime = Field(alias="exportedAt")
    history: list[Snapshot] = Field(default_factory=list)
    last: Optional[LastSaved] = None


# -----------------------------
# Factories
# -----------------------------


def new_line() -> LineItem:
    return LineItem()


def default_quote(today: Optional[date] = None, *, quote_number: str = "") -> Quote:
    return Quote(quote_number=quote_number, quote_date=today or date.today())


def copy_lines(lines: list[LineItem]) -> list[LineItem]:
    return [ln.model_copy(deep=True) for ln in lines]


# -----------------------------
# Store-boundary normalization
# -----------------------------


def normalize_lines(raw: Any) -> list[LineItem]:
    """Parse stored lines; always returns at least one line, every line with an id."""
    items = raw if isinstance(raw, list) else []
    lines = [
        it if isinstance(it, LineItem) else LineItem.model_validate(it)
        for it in items
        if isinstance(it, (dict, LineItem))
    ]
    return lines or [new_line()]


def normalize_snapshot(
    raw: Any,
    *,
    now: datetime,
    id_factory: Callable[[], str] = new_id,
) -> Snapshot:
    if isinstance(raw, Snapshot):
        return raw
    if not isinstance(raw, dict):
        raise CorruptDataError("History record is not an object.")

    data = dict(raw)
    if data.get("id") in (None, ""):
        data["id"] = id_factory()
    else:
        data["id"] = str(data["id"])
    if not data.get("savedAt") and not data.get("saved_at"):
        data["savedAt"] = now
    if not isinstance(data.get("quote"), dict):
        data["quote"] = {}

    try:
        data["lines"] = normalize_lines(data.get("lines"))
        return Snapshot.model_validate(data)
    except PydanticValidationError as e:
        raise CorruptDataError("History record has an unexpected shape.") from e


def parse_last_saved(raw: Any) -> LastSaved:
    if not isinstance(raw, dict):
        raise CorruptDataError("Saved quote is not an object.")
    data = dict(raw)
    if not isinstance(data.get("quote"), dict):
        data["quote"] = {}
    try:
        data["lines"] = normalize_lines(data.get("lines"))
        return LastSaved.model_validate(data)
    except PydanticValidationError as e:
        raise CorruptDataError("Saved quote has an unexpected shape.") from e
