"""Catalog, blackout and tenant models read by the booking pipeline."""

from datetime import date

from pydantic import BaseModel, Field


class Package(BaseModel):
    """An event package a customer can reserve a date for."""

    package_id: str
    tenant_id: str
    title: str
    description: str = ""
    price_cents: int = Field(..., ge=0, description="Base price in minor units")
    active: bool = True


class AddOn(BaseModel):
    """Optional extra attached to a package."""

    add_on_id: str
    tenant_id: str
    package_id: str = Field(..., description="Package this add-on belongs to")
    title: str
    price_cents: int = Field(..., ge=0)


class BlackoutDate(BaseModel):
    """Administrator-imposed block on a date."""

    tenant_id: str
    date: date
    reason: str | None = None


class Tenant(BaseModel):
    """A business taking bookings, identified by its API key."""

    tenant_id: str
    name: str
    api_key: str
    active: bool = True
