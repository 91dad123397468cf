from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.core.config import settings
from app.core.errors import AccessDenied, InvalidEmail, InvitationClosed, ShareLinkRevoked
from app.core.security import utcnow
from app.db.models import Invitation as InvitationModel
from app.domains.documents.services import DocumentStore
from app.domains.invitations.entities import InvitationStatus
from app.domains.invitations.services import InvitationService
from app.domains.permissions.tiers import Tier
from app.domains.sharing.services import ShareLinkManager

from tests.conftest import FakeEmailSender


@pytest.fixture
async def owned_document(session, make_subject):
    alice = await make_subject("alice")
    document = await DocumentStore(session).create(alice, "Plan")
    return alice, document


async def _pending_count(session, document_uuid):
    result = await session.execute(
        select(func.count()).select_from(InvitationModel).where(
            InvitationModel.document_id == document_uuid,
            InvitationModel.status == "pending"
        )
    )
    return result.scalar()


async def test_invite_sends_email(session, owned_document):
    alice, document = owned_document
    sender = FakeEmailSender()

    result = await InvitationService(session, email_sender=sender).invite(
        document.uuid, alice, "Bob@Example.com", Tier.EDITOR
    )

    assert result.delivered is True
    assert result.invitation.email == "bob@example.com"
    assert result.invitation.status == InvitationStatus.PENDING
    assert sender.sent[0]["to"] == "bob@example.com"
    assert result.token in sender.sent[0]["text_body"]


async def test_delivery_failure_still_succeeds(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")

    result = await InvitationService(session, email_sender=FakeEmailSender(fail=True)).invite(
        document.uuid, alice, "bob@example.com", Tier.VIEWER
    )

    assert result.delivered is False
    assert "manually" in result.message
    acceptance = await ShareLinkManager(session).consume(result.token, bob)
    assert acceptance.tier == Tier.VIEWER


class BrokenEmailSender(FakeEmailSender):
    def send(self, to, subject, text_body, html_body=None, tag="invitation"):
        raise RuntimeError("connection pool exhausted")


async def test_unexpected_sender_error_still_succeeds(session, owned_document):
    alice, document = owned_document
    service = InvitationService(session, email_sender=BrokenEmailSender())

    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    assert result.delivered is False
    assert await _pending_count(session, document.uuid) == 1
    listed = await service.list_for_document(document.uuid, alice)
    assert [invitation.uuid for invitation in listed] == [result.invitation.uuid]


async def test_invalid_email(session, owned_document):
    alice, document = owned_document
    with pytest.raises(InvalidEmail):
        await InvitationService(session).invite(document.uuid, alice, "not-an-email", Tier.VIEWER)


async def test_viewer_cannot_invite(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    await DocumentStore(session).upsert_grant(document.uuid, alice, bob.user_id, Tier.VIEWER)

    with pytest.raises(AccessDenied):
        await InvitationService(session).invite(document.uuid, bob, "carol@example.com", Tier.VIEWER)


async def test_reinvite_keeps_single_pending_record(session, make_subject, owned_document):
    alice, document = owned_document
    editor = await make_subject("editor")
    service = InvitationService(session)

    first = await service.invite(document.uuid, alice, "editor@example.com", Tier.EDITOR)
    second = await service.invite(document.uuid, alice, "editor@example.com", Tier.EDITOR)

    assert second.refreshed is True
    assert second.invitation.uuid == first.invitation.uuid
    assert await _pending_count(session, document.uuid) == 1

    links = ShareLinkManager(session)
    with pytest.raises(ShareLinkRevoked):
        await links.consume(first.token, editor)
    acceptance = await links.consume(second.token, editor)
    assert acceptance.tier == Tier.EDITOR


async def test_accept_by_addressee(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    service = InvitationService(session)
    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    acceptance = await service.accept(result.invitation.uuid, bob)

    assert acceptance.tier == Tier.EDITOR
    invitations = await service.list_for_document(document.uuid, alice)
    assert invitations[0].status == InvitationStatus.ACCEPTED
    assert invitations[0].accepted_by == bob.user_id


async def test_accept_by_other_user_denied(session, make_subject, owned_document):
    alice, document = owned_document
    mallory = await make_subject("mallory")
    service = InvitationService(session)
    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    with pytest.raises(AccessDenied):
        await service.accept(result.invitation.uuid, mallory)


async def test_link_consumption_accepts_invitation(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    service = InvitationService(session)
    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.VIEWER)

    await ShareLinkManager(session).consume(result.token, bob)
    # Второй путь принятия сходится к той же выдаче
    acceptance = await service.accept(result.invitation.uuid, bob)

    assert acceptance.tier == Tier.VIEWER
    assert await DocumentStore(session).count_grants(document.uuid) == 1
    assert await service.list_for_email(bob) == []


async def test_revoke_invitation(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    service = InvitationService(session)
    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.VIEWER)

    revoked = await service.revoke(result.invitation.uuid, alice)

    assert revoked.status == InvitationStatus.EXPIRED
    with pytest.raises(InvitationClosed):
        await service.accept(result.invitation.uuid, bob)
    with pytest.raises(ShareLinkRevoked):
        await ShareLinkManager(session).consume(result.token, bob)
    with pytest.raises(InvitationClosed):
        await service.revoke(result.invitation.uuid, alice)


async def test_delete_expires_pending_invitations(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    service = InvitationService(session)
    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    await DocumentStore(session).delete(document.uuid, alice)

    assert await _pending_count(session, document.uuid) == 0
    with pytest.raises(InvitationClosed):
        await service.accept(result.invitation.uuid, bob)
    assert await service.list_for_email(bob) == []


async def test_accept_after_ttl_is_closed(session, make_subject, owned_document, monkeypatch):
    alice, document = owned_document
    bob = await make_subject("bob")
    service = InvitationService(session)
    result = await service.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    later = utcnow() + timedelta(hours=settings.invitation_ttl_hours + 1)
    monkeypatch.setattr("app.domains.invitations.entities.utcnow", lambda: later)

    with pytest.raises(InvitationClosed):
        await service.accept(result.invitation.uuid, bob)
    assert await DocumentStore(session).count_grants(document.uuid) == 0


async def test_reinvite_after_ttl_creates_new_record(session, make_subject, owned_document, monkeypatch):
    alice, document = owned_document
    bob = await make_subject("bob")
    service = InvitationService(session)
    first = await service.invite(document.uuid, alice, "bob@example.com", Tier.VIEWER)

    later = utcnow() + timedelta(hours=settings.invitation_ttl_hours + 1)
    monkeypatch.setattr("app.domains.invitations.services.utcnow", lambda: later)
    monkeypatch.setattr("app.domains.invitations.entities.utcnow", lambda: later)

    second = await service.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    assert second.refreshed is False
    assert second.invitation.uuid != first.invitation.uuid
    assert await _pending_count(session, document.uuid) == 1

    listed = {invitation.uuid: invitation for invitation in await service.list_for_document(document.uuid, alice)}
    assert listed[first.invitation.uuid].status == InvitationStatus.EXPIRED
    assert listed[second.invitation.uuid].status == InvitationStatus.PENDING

    links = ShareLinkManager(session)
    with pytest.raises(ShareLinkRevoked):
        await links.consume(first.token, bob)
    acceptance = await links.consume(second.token, bob)
    assert acceptance.tier == Tier.EDITOR
