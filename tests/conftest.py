"""
Pytest fixtures for the mandal ledger test suite.

Provides:
- An in-memory SQLite database, schema created fresh per test
- Member/admin factories and a helper to seed the pooled fund
- Deterministic doubles for slip storage and OCR
- A FastAPI TestClient wired to the same session
"""

import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["SMTP_HOST"] = ""

from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

import pytest

from mandal.core.errors import ExternalDependencyFailure
from mandal.core.security import create_access_token
from mandal.db.base import Base, SessionLocal, engine
from mandal.models import (
    Contribution,
    ContributionStatus,
    OcrStatus,
    PaymentProvider,
    User,
    UserRoleEnum,
    ApprovalStatus,
    KYCStatus,
)
from mandal.services.ocr import OcrResult
from mandal.services.storage import StoredImage, PROOF_URL_PREFIX


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def _make_user(db, name, role, approved=True, kyc_verified=True, is_active=True, email=None) -> User:
    user = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}.{uuid4().hex[:6]}@mandal.test",
        role=role,
        approval_status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING,
        kyc_status=KYCStatus.VERIFIED if kyc_verified else KYCStatus.PENDING,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_member(db):
    def factory(name="Asha", **kwargs) -> User:
        return _make_user(db, name, UserRoleEnum.MEMBER, **kwargs)
    return factory


@pytest.fixture
def member(make_member):
    return make_member("Asha")


@pytest.fixture
def admin(db):
    return _make_user(db, "Ravi Admin", UserRoleEnum.ADMIN)


@pytest.fixture
def second_admin(db):
    return _make_user(db, "Meera Admin", UserRoleEnum.ADMIN)


@pytest.fixture
def seed_fund(db):
    """Add approved contributions straight to the ledger, bypassing the slip workflow."""
    counter = {"n": 0}

    def seed(owner: User, *amounts) -> List[Contribution]:
        created = []
        for amount in amounts:
            counter["n"] += 1
            n = counter["n"]
            contribution = Contribution(
                member_id=owner.id,
                month=f"{2000 + n // 12:04d}-{n % 12 + 1:02d}",
                amount=Decimal(str(amount)),
                proof_url=f"{PROOF_URL_PREFIX}seed/{n}.jpg",
                provider=PaymentProvider.GPAY,
                ocr_status=OcrStatus.SUCCESS,
                transaction_id=f"SEED{n:08d}",
                status=ContributionStatus.DONE,
            )
            db.add(contribution)
            created.append(contribution)
        db.commit()
        return created
    return seed


# ---------------------------------------------------------------------------
# Storage / OCR doubles
# ---------------------------------------------------------------------------

class FakeStorage:
    """Keeps slips in memory and records discards."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.stored = {}
        self.discarded = []

    def store(self, content, folder_hint, name_hint, extension=".jpg"):
        if self.fail:
            raise ExternalDependencyFailure("UPLOAD_FAILED", "Failed to store payment slip image")
        url = f"{PROOF_URL_PREFIX}{folder_hint}/{name_hint}_{len(self.stored)}{extension}"
        self.stored[url] = content
        return StoredImage(url=url)

    def discard(self, url):
        self.discarded.append(url)
        self.stored.pop(url, None)

    def resolve(self, url):
        return None


class FakeOcr:
    """Returns a canned result (or raises) for every slip."""

    def __init__(self, result: Optional[OcrResult] = None, error: Optional[Exception] = None):
        self.result = result or OcrResult()
        self.error = error
        self.calls = []

    def extract(self, image_url):
        self.calls.append(image_url)
        if self.error is not None:
            raise self.error
        return self.result


def slip(transaction_id="UTR123456789012", provider=PaymentProvider.GPAY, amount="500", date="15/01/2024", reference_id=None):
    return OcrResult(
        transaction_id=transaction_id,
        reference_id=reference_id or transaction_id,
        amount=Decimal(amount) if amount is not None else None,
        date=date,
        time="10:30 AM",
        payee_name="Mandal Fund",
        raw_text=f"Paid to Mandal Fund {transaction_id}",
        detected_provider=provider,
    )


@pytest.fixture
def storage():
    return FakeStorage()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_header():
    def header(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return header


@pytest.fixture
def client(db, storage, tmp_path, monkeypatch):
    from fastapi.testclient import TestClient
    from mandal.main import app
    from mandal.db.base import get_db
    from mandal.core.dependencies import get_image_storage, get_ocr_extractor

    monkeypatch.setattr("mandal.core.audit.LOGS_DIR", tmp_path / "logs")
    ocr = FakeOcr(slip())

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_storage] = lambda: storage
    app.dependency_overrides[get_ocr_extractor] = lambda: ocr
    with TestClient(app) as test_client:
        test_client.ocr = ocr
        yield test_client
    app.dependency_overrides.clear()
