# backend/pos_dashboard/schemas/records.py
"""
Upstream records.

Amounts and timestamps are normalized here, at ingestion, so every
calculator works on floats and timezone-aware datetimes only.
"""
from datetime import datetime, timezone
import math
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SaleStatus = Literal["PENDING", "COMPLETED", "CANCELLED"]
RegisterStatus = Literal["OPEN", "CLOSED"]


def normalize_amount(value: Any) -> float:
    """
    Money may arrive as a number or as numeric text ("50.00").
    Absent, unparsable, non-finite and negative values count as 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO8601 with or without 'Z'/offset; naive values are taken as UTC. Unparsable -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class SourceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return "" if v is None else str(v)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamp(cls, v):
        return parse_timestamp(v)


class User(SourceRecord):
    name: str = ""
    email: str = ""
    role: Optional[str] = None
    active: bool = False


class Product(SourceRecord):
    name: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    barcode: Optional[str] = None
    price: float = 0.0
    stock: Optional[int] = None
    active: bool = False

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v):
        return normalize_amount(v)


class SaleItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    product_id: Optional[str] = Field(default=None, alias="productId")
    product_name: str = Field(default="", alias="productName")
    quantity: int = 0
    price: float = 0.0

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v):
        return normalize_amount(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, v):
        try:
            return max(int(float(v)), 0)
        except (TypeError, ValueError):
            return 0


class Sale(SourceRecord):
    cash_register_id: Optional[str] = Field(default=None, alias="cashRegisterId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_name: Optional[str] = None
    items: List[SaleItem] = Field(default_factory=list)
    total: float = 0.0
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    status: Optional[SaleStatus] = None

    @model_validator(mode="before")
    @classmethod
    def _nested_user(cls, data):
        if isinstance(data, dict) and "user_name" not in data:
            user = data.get("user")
            if isinstance(user, dict) and user.get("name"):
                data = {**data, "user_name": user["name"]}
        return data

    @field_validator("total", mode="before")
    @classmethod
    def _total(cls, v):
        return normalize_amount(v)

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v):
        return [i for i in v if isinstance(i, (dict, SaleItem))] if isinstance(v, list) else []

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        if isinstance(v, str) and v.upper() in ("PENDING", "COMPLETED", "CANCELLED"):
            return v.upper()
        return None

    @property
    def is_completed(self) -> bool:
        return self.status == "COMPLETED"


class CashRegister(SourceRecord):
    user_id: Optional[str] = Field(default=None, alias="userId")
    status: Optional[RegisterStatus] = None
    initial_amount: float = Field(default=0.0, alias="initialAmount")
    current_amount: float = Field(default=0.0, alias="currentAmount")
    final_amount: Optional[float] = Field(default=None, alias="finalAmount")

    @field_validator("initial_amount", "current_amount", mode="before")
    @classmethod
    def _amounts(cls, v):
        return normalize_amount(v)

    @field_validator("final_amount", mode="before")
    @classmethod
    def _final(cls, v):
        return None if v is None else normalize_amount(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        if isinstance(v, str) and v.upper() in ("OPEN", "CLOSED"):
            return v.upper()
        return None
