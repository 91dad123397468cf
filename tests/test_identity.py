from datetime import timedelta
import uuid

import pytest

from app.core.errors import ExpiredCredential, InvalidCredential, RevokedCredential
from app.core.security import create_access_token
from app.domains.identity.schemas import UserLogin
from app.domains.identity.services import IdentityContext, IdentityService

from tests.conftest import PASSWORD


async def _login(session, name):
    return await IdentityService(session).login_user(
        UserLogin(email=f"{name}@example.com", password=PASSWORD)
    )


async def test_resolve_valid_token(session, make_subject):
    alice = await make_subject("alice")
    token = await _login(session, "alice")

    subject = await IdentityContext(session).resolve(token)

    assert subject.user_id == alice.user_id
    assert subject.email == "alice@example.com"
    assert subject.session_id is not None


async def test_wrong_password_gives_no_token(session, make_subject):
    await make_subject("alice")
    token = await IdentityService(session).login_user(
        UserLogin(email="alice@example.com", password="Wrong1234")
    )
    assert token is None


async def test_missing_and_garbage_credentials(session):
    context = IdentityContext(session)
    with pytest.raises(InvalidCredential):
        await context.resolve("")
    with pytest.raises(InvalidCredential):
        await context.resolve("not-a-jwt")


async def test_expired_token(session, make_subject):
    alice = await make_subject("alice")
    token = create_access_token(
        user_id=alice.user_id,
        session_id=uuid.uuid4(),
        email=alice.email,
        expires_delta=timedelta(seconds=-10)
    )

    with pytest.raises(ExpiredCredential):
        await IdentityContext(session).resolve(token)


async def test_unknown_session_is_invalid(session, make_subject):
    alice = await make_subject("alice")
    token = create_access_token(user_id=alice.user_id, session_id=uuid.uuid4(), email=alice.email)

    with pytest.raises(InvalidCredential):
        await IdentityContext(session).resolve(token)


async def test_logout_revokes_token(session, make_subject):
    await make_subject("alice")
    token = await _login(session, "alice")
    context = IdentityContext(session)
    subject = await context.resolve(token)

    assert await IdentityService(session).logout(subject) is True

    with pytest.raises(RevokedCredential):
        await context.resolve(token)


async def test_duplicate_registration_rejected(make_subject):
    await make_subject("alice")
    with pytest.raises(ValueError):
        await make_subject("alice")
