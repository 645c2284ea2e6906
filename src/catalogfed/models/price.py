"""Price window models — The mutable sub-entity of a catalog product.

A product document owns an ordered list of price windows stored under
``priceWindows`` (camelCase, as indexed)::

    {
        "billingReferenceId": "2",
        "startDate": "2024-04-02",
        "endDate": "2050-12-31",
        "startTimestamp": 1712016000000,
        "endTimestamp": 2556143999999,
        "amount": 9.99,
        "currency": "EUR"
    }

``billingReferenceId`` is unique within one document.  The timestamps are
derived from the calendar dates so the backend can run numeric range queries.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from catalogfed.models.document import ConcurrencyToken


def _epoch_millis(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=UTC).timestamp() * 1000)


class PriceWindow(BaseModel):
    """A priced validity interval keyed by ``billingReferenceId``.

    Unknown fields are preserved, so payload attributes the core does not
    model (tax codes, channel ids, ...) round-trip through an update.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    billing_reference_id: str = Field(alias="billingReferenceId", min_length=1, description="Unique window key")
    start_date: date | None = Field(default=None, alias="startDate", description="First valid day")
    end_date: date | None = Field(default=None, alias="endDate", description="Last valid day (inclusive)")
    start_timestamp: int | None = Field(
        default=None,
        alias="startTimestamp",
        description="Derived: start of start_date, UTC epoch millis",
    )
    end_timestamp: int | None = Field(
        default=None,
        alias="endTimestamp",
        description="Derived: last millisecond of end_date, UTC epoch millis",
    )
    amount: float | None = Field(default=None, description="Price amount")
    currency: str | None = Field(default=None, description="ISO 4217 currency code")

    @model_validator(mode="after")
    def _check_interval(self) -> PriceWindow:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(f"endDate {self.end_date} is before startDate {self.start_date}")
        return self

    def with_derived_fields(self) -> PriceWindow:
        """Return a copy whose timestamps are recomputed from the calendar dates.

        Pure and idempotent: missing dates clear the matching timestamp.
        """
        start = _epoch_millis(self.start_date) if self.start_date else None
        end = _epoch_millis(self.end_date + timedelta(days=1)) - 1 if self.end_date else None
        return self.model_copy(update={"start_timestamp": start, "end_timestamp": end})

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored (camelCase, JSON) representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UpdateAction(str, Enum):
    """What an upsert did to the price window list."""

    APPENDED = "appended"
    REPLACED = "replaced"


class UpdateResult(BaseModel):
    """Outcome of a successful price window update."""

    collection: str = Field(description="Collection holding the product")
    document_id: str = Field(description="Product document id")
    billing_reference_id: str = Field(description="Key of the upserted window")
    action: UpdateAction = Field(description="Whether the window was appended or replaced")
    index: int = Field(description="Position of the window in the list")
    window_count: int = Field(description="Number of windows after the update")
    attempts: int = Field(description="Read-modify-write cycles used (1 = no conflict)")
    token: ConcurrencyToken = Field(description="Token of the written revision")
