import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from app.core.db import SessionLocal
from app.core.errors import AccessDenied, DocumentNotFound, InvalidGrant, InvalidTier, UserNotFound
from app.db.models import CollaboratorGrant as GrantModel
from app.domains.documents.schemas import DocumentUpdate
from app.domains.documents.services import DocumentStore
from app.domains.permissions.tiers import Tier


async def test_creator_is_owner(session, make_subject):
    alice = await make_subject("alice")
    store = DocumentStore(session)

    document = await store.create(alice, "Plan", "draft")
    access = await store.get(document.uuid, alice)

    assert access.tier == Tier.OWNER
    assert access.document.owner_id == alice.user_id


async def test_stranger_cannot_read(session, make_subject):
    alice = await make_subject("alice")
    mallory = await make_subject("mallory")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")

    with pytest.raises(AccessDenied):
        await store.get(document.uuid, mallory)


async def test_viewer_grant_cannot_update(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")
    await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.VIEWER)

    assert (await store.get(document.uuid, bob)).tier == Tier.VIEWER
    with pytest.raises(AccessDenied):
        await store.update(document.uuid, bob, DocumentUpdate(content="changed"))


async def test_editor_updates_and_bumps_recency(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    first = await store.create(alice, "First")
    second = await store.create(alice, "Second")
    await store.upsert_grant(first.uuid, alice, bob.user_id, "editor")

    access = await store.update(first.uuid, bob, DocumentUpdate(content="new text"))
    assert access.document.content == "new text"

    documents, total = await store.list(alice)
    assert total == 2
    assert documents[0].document.uuid == first.uuid
    assert second.uuid in [access.document.uuid for access in documents]


async def test_list_includes_shared_documents(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    shared = await store.create(alice, "Shared")
    await store.create(alice, "Private")
    await store.upsert_grant(shared.uuid, alice, bob.user_id, Tier.VIEWER)

    documents, total = await store.list(bob)

    assert total == 1
    assert documents[0].document.uuid == shared.uuid
    assert documents[0].tier == Tier.VIEWER


async def test_list_reports_tier_and_collaborators(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    carol = await make_subject("carol")
    store = DocumentStore(session)
    shared = await store.create(alice, "Shared")
    await store.upsert_grant(shared.uuid, alice, bob.user_id, Tier.VIEWER)
    await store.upsert_grant(shared.uuid, alice, carol.user_id, Tier.EDITOR)

    for subject, tier in ((alice, Tier.OWNER), (bob, Tier.VIEWER), (carol, Tier.EDITOR)):
        documents, total = await store.list(subject)
        assert total == 1
        assert documents[0].tier == tier
        assert documents[0].collaborators_count == 2


async def test_only_owner_manages_grants(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    carol = await make_subject("carol")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")
    await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.EDITOR)

    with pytest.raises(AccessDenied):
        await store.upsert_grant(document.uuid, bob, carol.user_id, Tier.VIEWER)


async def test_grant_validation(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")

    with pytest.raises(InvalidGrant):
        await store.upsert_grant(document.uuid, alice, alice.user_id, Tier.EDITOR)
    with pytest.raises(InvalidTier):
        await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.OWNER)
    with pytest.raises(UserNotFound):
        await store.upsert_grant(document.uuid, alice, uuid.uuid4(), Tier.VIEWER)


async def test_upsert_replaces_existing_grant(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")

    await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.VIEWER)
    grant = await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.EDITOR)

    assert grant.tier == Tier.EDITOR
    assert await store.count_grants(document.uuid) == 1


async def test_concurrent_upserts_leave_single_grant(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    document = await DocumentStore(session).create(alice, "Plan")

    async def upsert(tier):
        async with SessionLocal() as db:
            return await DocumentStore(db).upsert_grant(document.uuid, alice, bob.user_id, tier)

    await asyncio.gather(*(upsert(tier) for tier in [Tier.VIEWER, Tier.EDITOR] * 5))

    result = await session.execute(
        select(func.count()).select_from(GrantModel).where(GrantModel.document_id == document.uuid)
    )
    assert result.scalar() == 1


async def test_collaborator_can_leave(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")
    await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.VIEWER)

    assert await store.remove_grant(document.uuid, bob, bob.user_id) is True
    with pytest.raises(AccessDenied):
        await store.get(document.uuid, bob)


async def test_delete_requires_owner(session, make_subject):
    alice = await make_subject("alice")
    bob = await make_subject("bob")
    store = DocumentStore(session)
    document = await store.create(alice, "Plan")
    await store.upsert_grant(document.uuid, alice, bob.user_id, Tier.EDITOR)

    with pytest.raises(AccessDenied):
        await store.delete(document.uuid, bob)

    await store.delete(document.uuid, alice)
    with pytest.raises(DocumentNotFound):
        await store.get(document.uuid, alice)
    with pytest.raises(DocumentNotFound):
        await store.get(document.uuid, bob)
