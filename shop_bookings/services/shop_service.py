import logging

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop_bookings.db.models import MANAGING_STAFF_ROLES, Review, Shop, ShopService, ShopStaff, StaffRole, User
from shop_bookings.schemas.shop import ShopCreateRequest, ShopServiceCreateRequest, StaffCreateRequest, StaffUpdateRequest
from shop_bookings.services.booking_service import SHOP_NOT_FOUND_DETAIL, get_staff_role

logger = logging.getLogger(__name__)

STAFF_EXISTS_DETAIL = "User is already a staff member of this shop"
STAFF_NOT_FOUND_DETAIL = "Staff member not found"
LAST_OWNER_DETAIL = "A shop needs at least one active owner"
SERVICE_EXISTS_DETAIL = "Shop already offers a service with this name"
STAFF_ADMIN_ROLES = frozenset({StaffRole.OWNER.value, StaffRole.ADMIN.value})


def get_shop(db: Session, shop_id: int) -> Shop:
    shop = db.scalar(select(Shop).where(Shop.id == shop_id))
    if not shop:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SHOP_NOT_FOUND_DETAIL)
    return shop


def _forbidden(detail: str = "Not enough permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _require_staff_admin(db: Session, shop_id: int, actor: User) -> str | None:
    """Return the actor's staff role once they are allowed to manage the roster."""
    actor_role = get_staff_role(db, shop_id=shop_id, user_id=actor.id)
    if not actor.is_super_admin and actor_role not in STAFF_ADMIN_ROLES:
        raise _forbidden()
    return actor_role


def _require_managing_staff(db: Session, shop_id: int, actor: User) -> None:
    if not actor.is_super_admin and get_staff_role(db, shop_id=shop_id, user_id=actor.id) not in MANAGING_STAFF_ROLES:
        raise _forbidden()


def create_shop(db: Session, owner: User, payload: ShopCreateRequest) -> Shop:
    shop = Shop(name=payload.name, address=payload.address, phone=payload.phone)
    db.add(shop)
    db.flush()
    db.add(ShopStaff(shop_id=shop.id, user_id=owner.id, role=StaffRole.OWNER.value, is_active=True))
    db.commit()
    db.refresh(shop)
    logger.info("shop_created shop_id=%s owner_id=%s", shop.id, owner.id)
    return shop


def add_staff_member(db: Session, shop_id: int, actor: User, payload: StaffCreateRequest) -> ShopStaff:
    get_shop(db, shop_id)
    actor_role = _require_staff_admin(db, shop_id, actor)
    if payload.role == StaffRole.OWNER and not actor.is_super_admin and actor_role != StaffRole.OWNER.value:
        raise _forbidden("Only owners can add owners")

    user = db.scalar(select(User).where(User.id == payload.user_id))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    member = ShopStaff(shop_id=shop_id, user_id=user.id, role=payload.role.value, is_active=True)
    db.add(member)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=STAFF_EXISTS_DETAIL) from None
    db.refresh(member)
    logger.info("shop_staff_added shop_id=%s user_id=%s role=%s", shop_id, user.id, member.role)
    return member


def _count_active_owners(db: Session, shop_id: int) -> int:
    return db.scalar(
        select(func.count(ShopStaff.id)).where(
            ShopStaff.shop_id == shop_id,
            ShopStaff.role == StaffRole.OWNER.value,
            ShopStaff.is_active.is_(True),
        )
    )


def update_staff_member(
    db: Session,
    shop_id: int,
    staff_id: int,
    actor: User,
    payload: StaffUpdateRequest,
) -> ShopStaff:
    """Change a staff member's role or switch their membership on and off.

    Deactivated members keep their row, so bookings they handled stay
    attributable, but lose every staff right in the shop immediately.
    """
    get_shop(db, shop_id)
    actor_role = _require_staff_admin(db, shop_id, actor)
    member = db.scalar(select(ShopStaff).where(ShopStaff.id == staff_id, ShopStaff.shop_id == shop_id))
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STAFF_NOT_FOUND_DETAIL)

    touches_owner = member.role == StaffRole.OWNER.value or payload.role == StaffRole.OWNER
    if touches_owner and not actor.is_super_admin and actor_role != StaffRole.OWNER.value:
        raise _forbidden("Only owners can change owners")

    new_role = payload.role.value if payload.role is not None else member.role
    new_active = payload.is_active if payload.is_active is not None else member.is_active
    loses_owner = member.is_active and member.role == StaffRole.OWNER.value and (
        new_role != StaffRole.OWNER.value or not new_active
    )
    if loses_owner and _count_active_owners(db, shop_id) <= 1:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=LAST_OWNER_DETAIL)

    member.role = new_role
    member.is_active = new_active
    db.commit()
    db.refresh(member)
    logger.info(
        "shop_staff_updated shop_id=%s staff_id=%s user_id=%s role=%s is_active=%s actor_id=%s",
        shop_id,
        member.id,
        member.user_id,
        member.role,
        member.is_active,
        actor.id,
    )
    return member


def deactivate_staff_member(db: Session, shop_id: int, staff_id: int, actor: User) -> ShopStaff:
    return update_staff_member(db, shop_id, staff_id, actor, StaffUpdateRequest(is_active=False))


def list_staff(db: Session, shop_id: int, actor: User, limit: int = 20, offset: int = 0) -> list[ShopStaff]:
    get_shop(db, shop_id)
    _require_managing_staff(db, shop_id, actor)
    return list(
        db.scalars(
            select(ShopStaff)
            .where(ShopStaff.shop_id == shop_id)
            .order_by(ShopStaff.id)
            .limit(limit)
            .offset(offset)
        ).all()
    )


def add_shop_service(db: Session, shop_id: int, actor: User, payload: ShopServiceCreateRequest) -> ShopService:
    get_shop(db, shop_id)
    _require_managing_staff(db, shop_id, actor)
    service = ShopService(
        shop_id=shop_id,
        name=payload.name.strip(),
        description=payload.description,
        duration_minutes=payload.duration_minutes,
        price=payload.price,
        is_active=True,
    )
    db.add(service)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SERVICE_EXISTS_DETAIL) from None
    db.refresh(service)
    logger.info("shop_service_added shop_id=%s service_id=%s price=%s", shop_id, service.id, service.price)
    return service


def list_shop_services(db: Session, shop_id: int, limit: int = 20, offset: int = 0) -> list[ShopService]:
    get_shop(db, shop_id)
    return list(
        db.scalars(
            select(ShopService)
            .where(ShopService.shop_id == shop_id, ShopService.is_active.is_(True))
            .order_by(ShopService.name, ShopService.id)
            .limit(limit)
            .offset(offset)
        ).all()
    )


def list_shop_reviews(db: Session, shop_id: int, limit: int = 20, offset: int = 0) -> list[Review]:
    get_shop(db, shop_id)
    return list(
        db.scalars(
            select(Review)
            .where(Review.shop_id == shop_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
    )
