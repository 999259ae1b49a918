from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from shop_bookings.db.models.shop import StaffRole


class ShopCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=40)


class ShopResponse(BaseModel):
    id: int
    name: str
    address: str | None
    phone: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class StaffCreateRequest(BaseModel):
    user_id: int
    role: StaffRole


class StaffResponse(BaseModel):
    id: int
    shop_id: int
    user_id: int
    role: StaffRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class StaffUpdateRequest(BaseModel):
    role: StaffRole | None = None
    is_active: bool | None = None

    @model_validator(mode="after")
    def validate_has_changes(self) -> "StaffUpdateRequest":
        if self.role is None and self.is_active is None:
            raise ValueError("role or is_active must be provided")
        return self


class ShopServiceCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    duration_minutes: int = Field(default=30, ge=5, le=480)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class ShopServiceResponse(BaseModel):
    id: int
    shop_id: int
    name: str
    description: str | None
    duration_minutes: int
    price: Decimal
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
