"""
Shared fixtures: configuration snapshots, an in-memory database and an API
client bound to it.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.records import ExpenseStatus
from app.core.situations import (
    IncomeCategory,
    IncomeSource,
    Situation,
    TaxConfig,
    VatStatus,
    VehicleType,
)
from app.main import app
from app.models import Base, Expense


@pytest.fixture
def situation_2024():
    return Situation(
        id=1,
        valid_from=date(2024, 1, 1),
        valid_to=date(2025, 1, 1),
        jurisdiction="AT",
        vat_status=VatStatus.STANDARD,
        has_company_vehicle=True,
        vehicle_type=VehicleType.ICE,
        vehicle_business_percent=70,
        telecom_business_percent=60,
    )


@pytest.fixture
def situation_2025():
    return Situation(
        id=2,
        valid_from=date(2025, 1, 1),
        valid_to=None,
        jurisdiction="AT",
        vat_status=VatStatus.STANDARD,
        has_company_vehicle=True,
        vehicle_type=VehicleType.ELECTRIC,
        vehicle_business_percent=80,
        telecom_business_percent=50,
    )


@pytest.fixture
def freelance_source():
    return IncomeSource(
        id="freelance",
        name="Freelance Development",
        category=IncomeCategory.SELF_EMPLOYMENT,
        valid_from=date(2024, 1, 1),
    )


@pytest.fixture
def rental_source():
    return IncomeSource(
        id="rental",
        name="Apartment Rental",
        category=IncomeCategory.RENTAL,
        valid_from=date(2025, 1, 1),
    )


@pytest.fixture
def config(situation_2024, situation_2025, freelance_source, rental_source):
    return TaxConfig(
        jurisdiction="AT",
        situations=[situation_2024, situation_2025],
        income_sources=[freelance_source, rental_source],
        accounts=["me@example.com"],
    )


@pytest.fixture
def config_payload():
    """The `config` fixture as it travels in a request body."""
    return {
        "jurisdiction": "AT",
        "situations": [
            {
                "id": 1,
                "valid_from": "2024-01-01",
                "valid_to": "2025-01-01",
                "jurisdiction": "AT",
                "has_company_vehicle": True,
                "vehicle_type": "ice",
                "vehicle_business_percent": 70,
                "telecom_business_percent": 60,
            },
            {
                "id": 2,
                "valid_from": "2025-01-01",
                "jurisdiction": "AT",
                "has_company_vehicle": True,
                "vehicle_type": "electric",
                "vehicle_business_percent": 80,
                "telecom_business_percent": 50,
            },
        ],
        "income_sources": [
            {"id": "freelance", "name": "Freelance Development", "category": "self_employment", "valid_from": "2024-01-01"},
            {"id": "rental", "name": "Apartment Rental", "category": "rental", "valid_from": "2025-01-01"},
        ],
        "accounts": ["me@example.com"],
    }


# ── Database ──

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def make_expense(session):
    """Insert an expense row and return it."""

    def _make(expense_id="exp-1", account="me@example.com", **fields):
        values = {
            "sender": "Billing <billing@hetzner.com>",
            "sender_domain": "hetzner.com",
            "subject": "Your invoice",
            "snippet": "Cloud server CX21",
            "status": ExpenseStatus.EXTRACTED,
            "invoice_date": date(2024, 6, 15),
            "invoice_amount_cents": 12_34,
        }
        values.update(fields)
        expense = Expense(id=expense_id, account=account, **values)
        session.add(expense)
        session.commit()
        return expense

    return _make


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
