from datetime import datetime, timedelta, timezone
import uuid

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.config import settings
from app.core.database import Base, get_db
from app.core.types import utcnow
from app.models.booking import Booking, BookingStatus, compute_end_time, compute_total_amount
from app.models.tutor_profile import TutorProfile
from app.models.user import User, UserRole
from app.services.booking_service import BookingService
from app.services.policies import Actor

NOW = datetime(2030, 3, 4, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock the services can be pinned to"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)


def tutor_actor(profile: TutorProfile) -> Actor:
    return Actor(id=profile.user_id, role=UserRole.TUTOR)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def booking_service(db, clock):
    return BookingService(db, clock=clock)


@pytest.fixture
def make_user(db):
    async def factory(role: UserRole = UserRole.STUDENT, full_name: str = None, is_active: bool = True) -> User:
        user = User(
            role=role,
            full_name=full_name or f"{role.value.title()} {uuid.uuid4().hex[:4]}",
            email=f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        return user

    return factory


@pytest.fixture
def make_tutor(db, make_user):
    async def factory(
        subjects=("Mathematics", "Physics"),
        hourly_rate: float = 20.0,
        is_active: bool = True,
        location: str = "Berlin",
        full_name: str = None
    ) -> TutorProfile:
        user = await make_user(UserRole.TUTOR, full_name=full_name)
        profile = TutorProfile(
            user_id=user.id,
            subjects=list(subjects),
            languages=["English"],
            hourly_rate=hourly_rate,
            is_active=is_active,
            location=location,
        )
        db.add(profile)
        await db.commit()
        return profile

    return factory


@pytest.fixture
def make_booking(db):
    async def factory(
        student: User,
        tutor: TutorProfile,
        start: datetime = None,
        duration: float = 1.0,
        status: BookingStatus = BookingStatus.PENDING,
        subject: str = "Mathematics",
        **extra
    ) -> Booking:
        start = start or NOW + timedelta(days=2)
        booking = Booking(
            student_id=student.id,
            tutor_id=tutor.user_id,
            subject=subject,
            scheduled_date=start,
            start_time=start,
            end_time=compute_end_time(start, duration),
            duration=duration,
            hourly_rate=tutor.hourly_rate,
            total_amount=compute_total_amount(duration, tutor.hourly_rate),
            status=status,
            **extra
        )
        db.add(booking)
        await db.commit()
        return booking

    return factory


@pytest.fixture
async def student(make_user):
    return await make_user(UserRole.STUDENT, full_name="Sam Student")


@pytest.fixture
async def tutor(make_tutor):
    return await make_tutor(full_name="Tara Tutor")


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, full_name="Ada Admin")


def make_token(user_id: uuid.UUID, expires_in: timedelta = timedelta(hours=1)) -> str:
    payload = {"sub": str(user_id), "exp": utcnow() + expires_in}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(user_id: uuid.UUID) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
async def client(db):
    from app.main import app

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
