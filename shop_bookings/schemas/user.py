from datetime import datetime

from pydantic import BaseModel, EmailStr

from shop_bookings.db.models.user import PlatformRole


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: str | None
    platform_role: PlatformRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
