"""Pydantic models for request/response schemas."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from handyhub.db_models import TaskPriority, UserRole

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?\d{7,15}$")


class ErrorResponse(BaseModel):
    success: bool = False
    message: str


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    role: UserRole = UserRole.requester

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        cleaned = re.sub(r"[\s\-()]", "", v)
        if not _PHONE_RE.match(cleaned):
            raise ValueError("Phone number must be 7-15 digits, optionally prefixed with +")
        return cleaned


class ResolvedLocation(BaseModel):
    kind: Literal["point"] = "point"
    lng: float = Field(ge=-180, le=180)
    lat: float = Field(ge=-90, le=90)
    address: str | None = None


class AddressLocation(BaseModel):
    """An address that still has to go through the geocoder."""

    kind: Literal["address"] = "address"
    address: str = Field(min_length=1, max_length=500)


LocationInput = Annotated[ResolvedLocation | AddressLocation, Field(discriminator="kind")]


def _is_number(v: Any) -> bool:
    return isinstance(v, int | float) and not isinstance(v, bool)


def _normalize_location(raw: Any) -> dict | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        return {"kind": "address", "address": raw.strip()}
    if isinstance(raw, list | tuple):
        if len(raw) == 2 and all(_is_number(c) for c in raw):
            return {"kind": "point", "lng": raw[0], "lat": raw[1]}
        raise ValueError("Coordinate pair must be [lng, lat]")
    if not isinstance(raw, dict):
        raise ValueError("Unsupported location format")
    if raw.get("kind") in ("point", "address"):
        return raw

    address = raw.get("address")
    coords = raw.get("coordinates")
    # GeoJSON Point: {"type": "Point", "coordinates": [lng, lat]}
    if raw.get("type") == "Point" and isinstance(coords, list | tuple):
        if len(coords) != 2 or not all(_is_number(c) for c in coords):
            raise ValueError("GeoJSON coordinates must be [lng, lat]")
        return {"kind": "point", "lng": coords[0], "lat": coords[1], "address": address}
    # {"coordinates": {"lat": .., "lng": ..}, "address": ..}
    if isinstance(coords, dict):
        lat = coords.get("lat", raw.get("lat"))
        lng = coords.get("lng", raw.get("lng"))
        if not (_is_number(lat) and _is_number(lng)):
            raise ValueError("Location coordinates need numeric lat and lng")
        return {"kind": "point", "lng": lng, "lat": lat, "address": address}
    if isinstance(address, str) and address.strip():
        return {"kind": "address", "address": address.strip()}
    raise ValueError("Unsupported location format")


class TaskCreateRequest(BaseModel):
    """Task intake. Budget and location arrive in several client shapes and
    are collapsed into one form here, before the task service sees them."""

    model_config = {"str_strip_whitespace": True}

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    min_budget: float = Field(gt=0)
    max_budget: float = Field(gt=0)
    date: datetime
    category: str = Field(min_length=1, max_length=100)
    priority: TaskPriority = TaskPriority.medium
    location: LocationInput | None = None

    @model_validator(mode="before")
    @classmethod
    def normalize_shapes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        budget = data.pop("budget", None)
        budget_min = data.pop("budgetMin", data.pop("minBudget", None))
        budget_max = data.pop("budgetMax", data.pop("maxBudget", None))
        if "min_budget" not in data or "max_budget" not in data:
            if isinstance(budget, dict) and budget.get("min") is not None and budget.get("max") is not None:
                data["min_budget"], data["max_budget"] = budget["min"], budget["max"]
            elif budget_min is not None and budget_max is not None:
                data["min_budget"], data["max_budget"] = budget_min, budget_max
            else:
                raise ValueError("Budget range (min and max) is required")

        if data.get("priority") in (None, ""):
            data.pop("priority", None)
        data["location"] = _normalize_location(data.get("location"))
        return data

    @model_validator(mode="after")
    def check_budget_order(self) -> TaskCreateRequest:
        if self.min_budget > self.max_budget:
            raise ValueError("Minimum budget cannot exceed maximum budget")
        return self


class StatusUpdateRequest(BaseModel):
    status: str = Field(min_length=1, max_length=50)


class CompleteRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: str | None = Field(default=None, max_length=5000)


class MessageRequest(BaseModel):
    # Trimming and the length limit are enforced by the message store.
    content: str
