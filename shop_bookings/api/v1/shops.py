from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from shop_bookings.api.deps import get_current_user
from shop_bookings.api.pagination import DEFAULT_PAGE_SIZE, LimitParam, OffsetParam
from shop_bookings.db.models import User
from shop_bookings.db.session import get_db
from shop_bookings.schemas.booking import BookingCreateRequest, BookingResponse, ReviewResponse
from shop_bookings.schemas.shop import (
    ShopCreateRequest,
    ShopResponse,
    ShopServiceCreateRequest,
    ShopServiceResponse,
    StaffCreateRequest,
    StaffResponse,
    StaffUpdateRequest,
)
from shop_bookings.services.booking_service import create_booking
from shop_bookings.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from shop_bookings.services.shop_service import (
    add_shop_service,
    add_staff_member,
    create_shop,
    deactivate_staff_member,
    get_shop,
    list_shop_reviews,
    list_shop_services,
    list_staff,
    update_staff_member,
)

router = APIRouter(prefix="/shops", tags=["shops"])


@router.post("", response_model=ShopResponse, status_code=status.HTTP_201_CREATED)
def create_new_shop(
    payload: ShopCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ShopResponse:
    shop = create_shop(db=db, owner=current_user, payload=payload)
    return ShopResponse.model_validate(shop)


@router.get("/{shop_id}", response_model=ShopResponse, status_code=status.HTTP_200_OK)
def get_shop_by_id(shop_id: int, db: Session = Depends(get_db)) -> ShopResponse:
    return ShopResponse.model_validate(get_shop(db, shop_id))


@router.post("/{shop_id}/staff", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def add_shop_staff(
    shop_id: int,
    payload: StaffCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StaffResponse:
    member = add_staff_member(db=db, shop_id=shop_id, actor=current_user, payload=payload)
    return StaffResponse.model_validate(member)


@router.get("/{shop_id}/staff", response_model=list[StaffResponse], status_code=status.HTTP_200_OK)
def list_shop_staff(
    shop_id: int,
    limit: LimitParam = DEFAULT_PAGE_SIZE,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[StaffResponse]:
    members = list_staff(db=db, shop_id=shop_id, actor=current_user, limit=limit, offset=offset)
    return [StaffResponse.model_validate(member) for member in members]


@router.post("/{shop_id}/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_at_shop(
    shop_id: int,
    payload: BookingCreateRequest,
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = create_booking(db=db, customer=current_user, shop_id=shop_id, payload=payload, notifier=notifier)
    return BookingResponse.model_validate(booking)


@router.patch("/{shop_id}/staff/{staff_id}", response_model=StaffResponse, status_code=status.HTTP_200_OK)
def update_shop_staff(
    shop_id: int,
    staff_id: int,
    payload: StaffUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StaffResponse:
    member = update_staff_member(db=db, shop_id=shop_id, staff_id=staff_id, actor=current_user, payload=payload)
    return StaffResponse.model_validate(member)


@router.delete("/{shop_id}/staff/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_shop_staff(
    shop_id: int,
    staff_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    deactivate_staff_member(db=db, shop_id=shop_id, staff_id=staff_id, actor=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{shop_id}/services", response_model=list[ShopServiceResponse], status_code=status.HTTP_200_OK)
def get_shop_services(
    shop_id: int,
    limit: LimitParam = DEFAULT_PAGE_SIZE,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[ShopServiceResponse]:
    services = list_shop_services(db=db, shop_id=shop_id, limit=limit, offset=offset)
    return [ShopServiceResponse.model_validate(service) for service in services]


@router.post("/{shop_id}/services", response_model=ShopServiceResponse, status_code=status.HTTP_201_CREATED)
def add_service_to_shop(
    shop_id: int,
    payload: ShopServiceCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ShopServiceResponse:
    service = add_shop_service(db=db, shop_id=shop_id, actor=current_user, payload=payload)
    return ShopServiceResponse.model_validate(service)


@router.get("/{shop_id}/reviews", response_model=list[ReviewResponse], status_code=status.HTTP_200_OK)
def get_shop_reviews(
    shop_id: int,
    limit: LimitParam = DEFAULT_PAGE_SIZE,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[ReviewResponse]:
    reviews = list_shop_reviews(db=db, shop_id=shop_id, limit=limit, offset=offset)
    return [ReviewResponse.model_validate(review) for review in reviews]
