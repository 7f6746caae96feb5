"""
Pytest configuration and fixtures for the ledgersync tests.

This module provides:
- A controllable clock for cache expiry and date filters
- The in-memory loan service and wrappers that record or fail requests
- Resource layer and orchestrator fixtures wired to them
- In-memory SQLite fixtures for the preference store
- Payload factories in the backend's camelCase shape
"""

import re
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import pytest
import pytz
from sqlalchemy import create_engine, StaticPool
from sqlalchemy.orm import sessionmaker, Session

from ledgersync.cache import TtlCacheStore
from ledgersync.config.settings import reset_settings
from ledgersync.core.exceptions import TransportError
from ledgersync.domain.views import Notice
from ledgersync.providers import InMemoryLoanService
from ledgersync.repositories.sqlalchemy.database import Base
# Import ORM models to register them with Base before creating tables
from ledgersync.repositories.sqlalchemy import orm_models  # noqa: F401
from ledgersync.repositories.sqlalchemy import SqlAlchemyPreferenceRepository
from ledgersync.services import (
    LoanMutationOrchestrator,
    LoanResourceService,
    PreferenceService,
)


# =============================================================================
# TIME HELPERS
# =============================================================================


def utc_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 10,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create an aware UTC datetime."""
    return pytz.UTC.localize(datetime(year, month, day, hour, minute, second))


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' timestamp for deterministic tests."""
    return utc_datetime(2024, 6, 15, 14, 30, 0)


@pytest.fixture
def clock(fixed_now) -> FakeClock:
    """Provide a controllable clock starting at fixed_now."""
    return FakeClock(fixed_now)


# =============================================================================
# REMOTE SERVICE FIXTURES
# =============================================================================


class RecordingService:
    """
    Wraps a remote service, recording every request and optionally failing
    the ones that match an injected rule.
    """

    def __init__(self, inner: Any):
        self._inner = inner
        self.calls: list[tuple[str, str, Optional[dict], Optional[dict]]] = []
        self._rules: list[tuple[Callable[[str, str, Optional[dict]], bool], Exception]] = []

    def fail_when(
        self,
        predicate: Callable[[str, str, Optional[dict]], bool],
        error: Exception,
    ) -> None:
        """Raise error for requests where predicate(method, path, json) is true."""
        self._rules.append((predicate, error))

    def fail_route(self, method: str, path_pattern: str, error: Exception) -> None:
        """Raise error for requests whose path fully matches path_pattern."""
        compiled = re.compile(path_pattern)
        self.fail_when(
            lambda m, p, _json: m == method and compiled.fullmatch(p) is not None,
            error,
        )

    def count(self, method: str, path_pattern: str = ".*") -> int:
        """Number of recorded requests matching method and path."""
        compiled = re.compile(path_pattern)
        return sum(1 for m, p, _, _ in self.calls if m == method and compiled.fullmatch(p))

    async def request(self, method, path, *, params=None, json=None):
        self.calls.append((method, path, params, json))
        for predicate, error in self._rules:
            if predicate(method, path, json):
                raise error
        return await self._inner.request(method, path, params=params, json=json)

    async def aclose(self) -> None:
        await self._inner.aclose()


class FailingService:
    """Remote service that always fails at the transport level."""

    def __init__(self, message: str = "Network Error"):
        self.message = message
        self.calls = 0

    async def request(self, method, path, *, params=None, json=None):
        self.calls += 1
        raise TransportError(self.message)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def stub_service(clock) -> InMemoryLoanService:
    """Provide the in-memory loan service."""
    return InMemoryLoanService(clock=clock)


@pytest.fixture
def remote(stub_service) -> RecordingService:
    """Provide a recording wrapper around the in-memory loan service."""
    return RecordingService(stub_service)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def cache_store(clock) -> TtlCacheStore:
    """Provide a TTL cache store driven by the fake clock."""
    return TtlCacheStore(clock=clock)


@pytest.fixture
def resources(remote, cache_store) -> LoanResourceService:
    """Provide the resource layer over the recording service."""
    return LoanResourceService(
        remote=remote,
        store=cache_store,
        loan_ttl_seconds=300,
        payment_method_ttl_seconds=600,
        analytics_ttl_seconds=300,
    )


@pytest.fixture
def notices() -> list[Notice]:
    """Collects notices emitted by the orchestrator."""
    return []


@pytest.fixture
def orchestrator(resources, notices) -> LoanMutationOrchestrator:
    """Provide an orchestrator that records its notices."""
    return LoanMutationOrchestrator(resources, notify=notices.append)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine with shared in-memory SQLite."""
    reset_settings()

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_session(test_engine) -> Session:
    """Create test database session."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def preference_repo(test_session) -> SqlAlchemyPreferenceRepository:
    """Provide test PreferenceRepository."""
    return SqlAlchemyPreferenceRepository(test_session)


@pytest.fixture
def preference_service(preference_repo) -> PreferenceService:
    """Provide test PreferenceService."""
    return PreferenceService(preference_repo)


# =============================================================================
# PAYLOAD FACTORIES
# =============================================================================


def loan_payload(
    loan_id: Any = 1,
    person_name: str = "Asha",
    original_amount: Any = 1000,
    loan_type: str = "TAKEN",
    status: Optional[str] = "ACTIVE",
    installments: Any = None,
    created_at: Optional[str] = "2024-06-01T09:00:00Z",
    id_field: str = "loanId",
    **extra: Any,
) -> dict[str, Any]:
    """Build a loan as the backend sends it."""
    payload = {
        id_field: loan_id,
        "type": loan_type,
        "personName": person_name,
        "originalAmount": original_amount,
        "startDate": "2024-06-01",
        "status": status,
        "installments": installments,
        "createdAt": created_at,
    }
    payload.update(extra)
    return payload


def installment_payload(
    installment_id: Any = 10,
    amount_paid: Any = 100,
    payment_date: str = "2024-06-05",
    method: Optional[dict] = None,
    id_field: str = "installmentId",
    **extra: Any,
) -> dict[str, Any]:
    """Build an installment as the backend sends it."""
    payload = {
        id_field: installment_id,
        "amountPaid": amount_paid,
        "paymentDate": payment_date,
    }
    if method is not None:
        payload["paymentMethod"] = method
    payload.update(extra)
    return payload
