from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from shop_bookings.db.models.booking import BookingStatus
from shop_bookings.services.booking_state_machine import BookingAction


class BookingScope(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    CANCELLED = "cancelled"
    ALL = "all"


class ServiceLineItem(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class BookingCreateRequest(BaseModel):
    provider_id: int | None = None
    appointment_date: date
    appointment_time: time
    services: list[ServiceLineItem] = Field(min_length=1)
    customer_notes: str | None = Field(default=None, max_length=500)


class BookingCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=480)


class BookingRejectRequest(BaseModel):
    reason: str = Field(max_length=480)


class BookingRescheduleRequest(BaseModel):
    appointment_date: date
    appointment_time: time


class BookingResponse(BaseModel):
    id: int
    shop_id: int
    customer_id: int
    provider_id: int | None
    appointment_date: date
    appointment_time: time
    services: list[ServiceLineItem]
    total_amount: Decimal
    status: BookingStatus
    customer_notes: str | None
    version: int
    completed_by: int | None
    created_at: datetime
    updated_at: datetime | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class BookingActionsResponse(BaseModel):
    booking_id: int
    status: BookingStatus
    role: str | None
    actions: list[BookingAction]


class ReviewCreateRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    provider_rating: int | None = Field(default=None, ge=1, le=5)
    review_text: str | None = Field(default=None, max_length=1000)


class ReviewResponse(BaseModel):
    id: int
    shop_id: int
    booking_id: int
    customer_id: int
    provider_id: int | None
    rating: int
    provider_rating: int | None
    review_text: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
