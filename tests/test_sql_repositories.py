from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, select

from app.application.ports.session_repo import OtpProviderName, OtpSession, OtpStatus
from app.database import build_engine, create_db_and_tables
from app.db.models import User, UserIdentity
from app.exceptions import IdentityExistsError
from app.infrastructure.persistence.sqlalchemy.repositories.otp_request_repository_sql import SqlOtpRequestRepository
from app.infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlIdentityDirectory


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


def make_session(session_id, created_at, phone="+79991234567"):
    return OtpSession(
        session_id=session_id,
        phone=phone,
        provider=OtpProviderName.SMSRU,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=5),
        secret="123456",
        qr_payload='{"sessionId":"%s"}' % session_id,
        metadata={"report": {"benefits": ["transport"]}},
    )


def test_build_engine_without_url_returns_none():
    assert build_engine("") is None
    assert build_engine("   ") is None


def test_otp_requests_lifecycle(engine):
    repo = SqlOtpRequestRepository(engine)
    base = datetime(2025, 11, 22, 12, 0, tzinfo=timezone.utc)
    repo.record(make_session("older", base))
    repo.record(make_session("newer", base + timedelta(seconds=30)))

    verified_at = base + timedelta(seconds=45)
    repo.update_status("older", OtpStatus.VERIFIED, verified_at=verified_at)
    repo.update_status("newer", OtpStatus.EXPIRED)
    # unknown ids are ignored
    repo.update_status("missing", OtpStatus.EXPIRED)

    rows = repo.list_recent(10)
    assert [r["request_id"] for r in rows] == ["newer", "older"]
    assert rows[0]["status"] == "expired"
    assert rows[0]["verified_at"] is None
    assert rows[1]["status"] == "verified"
    assert rows[1]["verified_at"] is not None
    assert rows[1]["provider"] == "smsru"
    assert rows[1]["metadata"] == {"report": {"benefits": ["transport"]}}
    assert "code" not in rows[1]

    assert [r["request_id"] for r in repo.list_recent(1)] == ["newer"]


def test_record_is_an_upsert(engine):
    repo = SqlOtpRequestRepository(engine)
    created = datetime(2025, 11, 22, 12, 0, tzinfo=timezone.utc)
    repo.record(make_session("s1", created))
    repo.record(make_session("s1", created, phone="+79990000000"))

    rows = repo.list_recent(10)
    assert len(rows) == 1
    assert rows[0]["phone"] == "+79990000000"


def test_create_confirmed_then_find(engine):
    directory = SqlIdentityDirectory(engine)
    assert directory.find_by_phone("+79991234567") is None

    user = directory.create_confirmed("+79991234567")
    assert user.is_verified is True

    found = directory.find_by_phone("+79991234567")
    assert found.id == user.id

    with Session(engine) as db:
        identity = db.exec(select(UserIdentity).where(UserIdentity.user_id == user.id)).one()
        assert identity.provider == "phone"


def test_duplicate_phone_raises_identity_exists(engine):
    directory = SqlIdentityDirectory(engine)
    directory.create_confirmed("+79991234567")
    with pytest.raises(IdentityExistsError) as exc:
        directory.create_confirmed("+79991234567")
    assert exc.value.phone == "+79991234567"


def test_find_matches_phone_stored_without_plus(engine):
    with Session(engine) as db:
        db.add(User(id="legacy", phone="79991234567", is_verified=True))
        db.commit()

    found = SqlIdentityDirectory(engine).find_by_phone("+79991234567")
    assert found is not None
    assert found.id == "legacy"


def test_find_through_linked_identity(engine):
    with Session(engine) as db:
        db.add(User(id="u1", phone="+10000000000"))
        db.add(UserIdentity(user_id="u1", provider="phone", phone="79991234567"))
        db.commit()

    found = SqlIdentityDirectory(engine).find_by_phone("+79991234567")
    assert found is not None
    assert found.id == "u1"
