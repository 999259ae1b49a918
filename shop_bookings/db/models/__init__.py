from shop_bookings.db.models.booking import ACTIVE_STATUSES, TERMINAL_STATUSES, Booking, BookingStatus
from shop_bookings.db.models.review import Review
from shop_bookings.db.models.shop import MANAGING_STAFF_ROLES, Shop, ShopService, ShopStaff, StaffRole
from shop_bookings.db.models.user import PlatformRole, User

__all__ = [
    "User",
    "PlatformRole",
    "Shop",
    "ShopStaff",
    "ShopService",
    "StaffRole",
    "MANAGING_STAFF_ROLES",
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Review",
]
