import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("AUTO_VERIFY_ON_LOAN", "true")
os.environ.setdefault("MONGODB_USE_TRANSACTIONS", "false")

import uuid
from datetime import datetime

import pytest
import pytest_asyncio
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from app.database.connection import DOCUMENT_MODELS
from app.database.models import User, Loan
from app.schemas import RoleEnum, VerificationStatusEnum, LoanStatusEnum


@pytest_asyncio.fixture
async def db():
    # Fresh in-memory database per test
    client = AsyncMongoMockClient()
    database = client[f"loan-test-{uuid.uuid4().hex}"]
    await init_beanie(database, document_models=DOCUMENT_MODELS)
    yield database


@pytest.fixture
def make_user(db):
    async def _make(name="Asha Rao", email=None, role=RoleEnum.user,
                    verification_status=VerificationStatusEnum.not_submitted, **fields):
        user = User(
            name=name,
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            hashed_password="not-a-real-hash",
            role=role,
            verification_status=verification_status,
            **fields,
        )
        await user.insert()
        return user
    return _make


@pytest.fixture
def make_loan(db):
    async def _make(user, amount=100000, term=12, status=LoanStatusEnum.pending, **fields):
        loan = Loan(
            user_id=user.id,
            amount=amount,
            purpose="Home renovation",
            term=term,
            status=status,
            application_date=fields.pop("application_date", datetime.utcnow()),
            **fields,
        )
        await loan.insert()
        return loan
    return _make


@pytest_asyncio.fixture
async def borrower(make_user):
    return await make_user(name="Borrower", email="borrower@example.com")


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(
        name="Admin",
        email="admin@example.com",
        role=RoleEnum.admin,
        verification_status=VerificationStatusEnum.verified,
    )
