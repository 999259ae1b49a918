import sys
from datetime import date, time
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from shop_bookings.core.security import create_access_token
from shop_bookings.db.base import Base
from shop_bookings.db.models import Booking, BookingStatus, PlatformRole, Review, Shop, ShopStaff, User  # noqa: F401
from shop_bookings.db.session import get_db
from shop_bookings.main import app
from shop_bookings.services.notification_service import InMemoryNotificationDispatcher, get_notification_dispatcher

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture()
def notifier() -> InMemoryNotificationDispatcher:
    return InMemoryNotificationDispatcher()


@pytest.fixture()
def db_session() -> Session:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(notifier) -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    def factory(email: str, platform_role: str = PlatformRole.CUSTOMER.value) -> User:
        user = User(email=email, name=email.split("@")[0], hashed_password="x", platform_role=platform_role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture()
def auth():
    def headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(subject=str(user.id))}"}

    return headers


@pytest.fixture()
def shop_world(db_session, make_user):
    """One shop with an owner, a manager, a barber and two customers."""
    owner = make_user("owner@example.com")
    manager = make_user("manager@example.com")
    barber = make_user("barber@example.com")
    customer = make_user("customer@example.com")
    other_customer = make_user("other@example.com")
    super_admin = make_user("root@example.com", platform_role=PlatformRole.SUPER_ADMIN.value)

    shop = Shop(name="Fade Factory", address="1 Main St", phone="555-0100")
    db_session.add(shop)
    db_session.flush()
    db_session.add_all(
        [
            ShopStaff(shop_id=shop.id, user_id=owner.id, role="owner"),
            ShopStaff(shop_id=shop.id, user_id=manager.id, role="manager"),
            ShopStaff(shop_id=shop.id, user_id=barber.id, role="barber"),
        ]
    )
    db_session.commit()
    return {
        "shop": shop,
        "owner": owner,
        "manager": manager,
        "barber": barber,
        "customer": customer,
        "other_customer": other_customer,
        "super_admin": super_admin,
    }


@pytest.fixture()
def make_booking(db_session):
    def factory(
        shop: Shop,
        customer: User,
        status: BookingStatus = BookingStatus.PENDING,
        provider: User | None = None,
        appointment_date: date = date(2030, 5, 14),
        appointment_time: time = time(10, 30),
        customer_notes: str | None = None,
    ) -> Booking:
        booking = Booking(
            shop_id=shop.id,
            customer_id=customer.id,
            provider_id=provider.id if provider else None,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            services=[{"name": "Haircut", "price": "25.00"}, {"name": "Beard trim", "price": "10.50"}],
            total_amount=Decimal("35.50"),
            status=status.value,
            customer_notes=customer_notes,
            version=1,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return factory
