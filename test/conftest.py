"""
Pytest configuration and shared fixtures.

Tests run against in-memory SQLite (aiosqlite) with the mock telephony
provider and the logging email sender.
"""

import os
import re
import tempfile
from collections.abc import AsyncGenerator

# Must be set before wakecall.main builds the app.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-wakecall-tests-only")
os.environ.setdefault("TELEPHONY_PROVIDER_TYPE", "mock")
os.environ.setdefault("TELEPHONY_TWILIO_FROM_NUMBER", "+15005550006")
os.environ.setdefault("TELEPHONY_WEBHOOK_BASE_URL", "https://hooks.example.com")
os.environ.setdefault("BILLING_WEBHOOK_SECRET", "billing-test-secret")
os.environ.setdefault("AUDIO_CACHE_DIR", tempfile.mkdtemp(prefix="wakecall-audio-"))
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("ELEVENLABS_API_KEY", "")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wakecall.auth.jwt import JWTService
from wakecall.auth.models import User
from wakecall.config import Settings
from wakecall.main import app
from wakecall.notifications.email import LogEmailSender, get_email_sender
from wakecall.personalization.models import Personalization
from wakecall.shared.database import Base, get_db_session
from wakecall.telephony.config import ProviderType, TelephonyConfig
from wakecall.telephony.factory import get_telephony_provider
from wakecall.telephony.mock_adapter import MockTelephonyProvider
from wakecall.voice.script import ScriptGenerator, get_script_generator
from wakecall.voice.tts import SpeechSynthesizer, get_speech_synthesizer

OTP_PATTERN = re.compile(r"\b(\d{6})\b")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key=os.environ["JWT_SECRET_KEY"],
        openai_api_key="",
        elevenlabs_api_key="",
        billing_webhook_secret=os.environ["BILLING_WEBHOOK_SECRET"],
        firebase_project_id="wakecall-test",
    )


@pytest.fixture
def telephony_config() -> TelephonyConfig:
    return TelephonyConfig(
        provider_type=ProviderType.MOCK,
        twilio_from_number="+15005550006",
        webhook_base_url="https://hooks.example.com",
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_provider() -> MockTelephonyProvider:
    return MockTelephonyProvider()


@pytest.fixture
def email_sender() -> LogEmailSender:
    return LogEmailSender()


@pytest.fixture
def script_generator(settings: Settings) -> ScriptGenerator:
    return ScriptGenerator(settings=settings)


@pytest.fixture
def synthesizer(settings: Settings, tmp_path) -> SpeechSynthesizer:
    return SpeechSynthesizer(settings=settings, cache_dir=tmp_path / "audio")


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    mock_provider: MockTelephonyProvider,
    email_sender: LogEmailSender,
    script_generator: ScriptGenerator,
    synthesizer: SpeechSynthesizer,
) -> AsyncGenerator[AsyncClient, None]:
    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_get_db_session
    app.dependency_overrides[get_telephony_provider] = lambda: mock_provider
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_script_generator] = lambda: script_generator
    app.dependency_overrides[get_speech_synthesizer] = lambda: synthesizer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    session: AsyncSession,
    email: str = "rise@example.com",
    name: str = "Jordan Rivers",
    phone: str | None = "+14155550123",
    phone_verified: bool = True,
    call_credits: int = 0,
) -> User:
    user = User(
        email=email,
        name=name,
        phone=phone,
        phone_verified=phone_verified,
        call_credits=call_credits,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_personalization(
    session: AsyncSession,
    user: User,
    voice: str = "jocko",
) -> Personalization:
    row = Personalization(
        user_id=user.id,
        goals=["exercise"],
        struggles=["snooze"],
        voice=voice,
    )
    session.add(row)
    user.is_personalized = True
    await session.commit()
    await session.refresh(row)
    return row


def auth_headers(user: User) -> dict[str, str]:
    token = JWTService(Settings()).create_access_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


def last_code(text: str) -> str:
    match = OTP_PATTERN.search(text)
    assert match is not None, text
    return match.group(1)
