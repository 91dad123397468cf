from datetime import timedelta

import pytest

from app.core.errors import AccessDenied, ShareLinkExpired, ShareLinkNotFound, ShareLinkRevoked
from app.core.security import utcnow
from app.domains.documents.schemas import DocumentUpdate
from app.domains.documents.services import DocumentStore
from app.domains.invitations.entities import InvitationStatus
from app.domains.invitations.services import InvitationService
from app.domains.permissions.tiers import Tier
from app.domains.sharing.services import ShareLinkManager


@pytest.fixture
async def owned_document(session, make_subject):
    alice = await make_subject("alice")
    document = await DocumentStore(session).create(alice, "Plan", "text")
    return alice, document


async def test_viewer_link_never_enables_update(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    links = ShareLinkManager(session)

    issued = await links.issue(document.uuid, alice, Tier.VIEWER)
    acceptance = await links.consume(issued.token, bob)

    assert acceptance.tier == Tier.VIEWER
    with pytest.raises(AccessDenied):
        await DocumentStore(session).update(document.uuid, bob, DocumentUpdate(content="hacked"))


async def test_consume_is_idempotent(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.EDITOR)

    await links.consume(issued.token, bob)
    await links.consume(issued.token, bob)

    assert await DocumentStore(session).count_grants(document.uuid) == 1


async def test_consume_does_not_downgrade(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    store = DocumentStore(session)
    await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.EDITOR)
    issued = await ShareLinkManager(session).issue(document.uuid, alice, Tier.VIEWER)

    acceptance = await ShareLinkManager(session).consume(issued.token, bob)

    assert acceptance.tier == Tier.EDITOR
    assert (await store.get(document.uuid, bob)).tier == Tier.EDITOR


async def test_owner_consuming_own_link_stays_owner(session, owned_document):
    alice, document = owned_document
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.VIEWER)

    acceptance = await links.consume(issued.token, alice)

    assert acceptance.tier == Tier.OWNER
    assert await DocumentStore(session).count_grants(document.uuid) == 0


async def test_owner_opening_invitation_link_leaves_it_pending(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    invitations = InvitationService(session)
    result = await invitations.invite(document.uuid, alice, "bob@example.com", Tier.EDITOR)

    acceptance = await ShareLinkManager(session).consume(result.token, alice)
    assert acceptance.tier == Tier.OWNER

    listed = await invitations.list_for_document(document.uuid, alice)
    assert listed[0].status == InvitationStatus.PENDING
    assert listed[0].accepted_by is None

    acceptance = await invitations.accept(result.invitation.uuid, bob)
    assert acceptance.tier == Tier.EDITOR
    assert await DocumentStore(session).count_grants(document.uuid) == 1


async def test_owner_consuming_single_use_link_keeps_it(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.VIEWER, single_use=True)

    await links.consume(issued.token, alice)
    acceptance = await links.consume(issued.token, bob)

    assert acceptance.tier == Tier.VIEWER


async def test_viewer_cannot_issue_links(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    await DocumentStore(session).upsert_grant(document.uuid, alice, bob.user_id, Tier.VIEWER)

    with pytest.raises(AccessDenied):
        await ShareLinkManager(session).issue(document.uuid, bob, Tier.VIEWER)


async def test_revoke_blocks_new_consumers_but_keeps_grants(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    carol = await make_subject("carol")
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.VIEWER)
    await links.consume(issued.token, bob)

    await links.revoke(issued.token, alice)

    with pytest.raises(ShareLinkRevoked):
        await links.resolve(issued.token)
    with pytest.raises(ShareLinkRevoked):
        await links.consume(issued.token, carol)
    assert (await DocumentStore(session).get(document.uuid, bob)).tier == Tier.VIEWER


async def test_expired_link(session, make_subject, owned_document, monkeypatch):
    alice, document = owned_document
    bob = await make_subject("bob")
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.VIEWER, expires_at=utcnow() + timedelta(hours=1))

    later = utcnow() + timedelta(hours=2)
    monkeypatch.setattr("app.domains.sharing.services.utcnow", lambda: later)

    with pytest.raises(ShareLinkExpired):
        await links.resolve(issued.token)
    with pytest.raises(ShareLinkExpired):
        await links.consume(issued.token, bob)


async def test_single_use_link_is_burned(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    carol = await make_subject("carol")
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.VIEWER, single_use=True)

    await links.consume(issued.token, bob)

    with pytest.raises(ShareLinkRevoked):
        await links.consume(issued.token, carol)


async def test_unknown_token(session, make_subject):
    bob = await make_subject("bob")
    with pytest.raises(ShareLinkNotFound):
        await ShareLinkManager(session).consume("no-such-token", bob)


async def test_delete_revokes_links(session, make_subject, owned_document):
    alice, document = owned_document
    bob = await make_subject("bob")
    links = ShareLinkManager(session)
    issued = await links.issue(document.uuid, alice, Tier.EDITOR)

    await DocumentStore(session).delete(document.uuid, alice)

    with pytest.raises(ShareLinkRevoked):
        await links.consume(issued.token, bob)


async def test_list_excludes_revoked_links(session, owned_document):
    alice, document = owned_document
    links = ShareLinkManager(session)
    kept = await links.issue(document.uuid, alice, Tier.VIEWER)
    dropped = await links.issue(document.uuid, alice, Tier.EDITOR)
    await links.revoke_by_id(document.uuid, dropped.link.uuid, alice)

    listed = await links.list_for_document(document.uuid, alice)

    assert [link.uuid for link in listed] == [kept.link.uuid]
