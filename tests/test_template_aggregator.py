import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from app.exceptions import StorageUnavailable
from app.models.enrollment import TEMPLATE_SLOTS, Identity, TemplateSlot
from app.repos.enrollment_repo import EnrollmentRepository
from app.schemas.enrollment import EnrollmentPayload
from app.services.template_aggregator import TemplateAggregator, combine_templates
from conftest import make_payload, template_bytes


def test_combine_templates_uses_canonical_finger_order():
    identity = Identity(name="Alice", id_number="ID-001")
    # assign in reverse to make sure attribute order does not matter
    for i, slot in reversed(list(enumerate(TEMPLATE_SLOTS))):
        setattr(identity, slot.value, template_bytes(i))

    combined = combine_templates(identity)

    assert combined == b"".join(template_bytes(i) for i in range(10))


def test_combine_templates_skips_absent_slots():
    identity = Identity(
        name="Bob",
        id_number="ID-002",
        fmr_right_thumb=b"RT",
        fmr_left_thumb=b"LT",
        fmr_left_little=b"LL",
    )

    assert combine_templates(identity) == b"RTLTLL"


def test_combine_templates_all_absent_is_empty():
    assert combine_templates(Identity(name="Empty", id_number="ID-000")) == b""


async def test_list_combined_templates_empty_store(session):
    assert await TemplateAggregator(session).list_combined_templates() == []


async def test_list_combined_templates_one_record_per_identity(database, session):
    repo = EnrollmentRepository(session)
    alice = await repo.save_enrollment("Alice", "ID-001", make_payload())
    bob = await repo.save_enrollment("Bob", "ID-002", make_payload())

    async with database.session_factory() as fresh:
        records = await TemplateAggregator(fresh).list_combined_templates()

    assert [r.identity_id for r in records] == [alice.id, bob.id]
    assert records[0].name == "Alice"
    assert records[0].id_number == "ID-001"
    expected_length = sum(len(template_bytes(i)) for i in range(10))
    assert len(records[0].combined_template) == expected_length


async def test_payload_key_order_does_not_change_combined_bytes(database, session):
    ordered = make_payload()
    shuffled = EnrollmentPayload(
        templates=dict(reversed(list(ordered.templates.items()))),
        images=ordered.images,
    )
    repo = EnrollmentRepository(session)
    await repo.save_enrollment("Alice", "ID-001", ordered)
    await repo.save_enrollment("Bob", "ID-002", shuffled)

    records = await TemplateAggregator(session).list_combined_templates()

    assert records[0].combined_template == records[1].combined_template


async def test_identity_without_templates_yields_empty_record(session):
    session.add(Identity(name="Nobody", id_number="ID-404"))
    await session.commit()

    records = await TemplateAggregator(session).list_combined_templates()

    assert len(records) == 1
    assert records[0].combined_template == b""


async def test_concurrent_reads_return_identical_bytes(database, session):
    await EnrollmentRepository(session).save_enrollment("Alice", "ID-001", make_payload())

    async def read():
        async with database.session_factory() as reader:
            records = await TemplateAggregator(reader).list_combined_templates()
            return records[0].combined_template

    results = await asyncio.gather(*(read() for _ in range(5)))

    assert len(set(results)) == 1
    assert results[0].startswith(template_bytes(TEMPLATE_SLOTS.index(TemplateSlot.right_thumb)))


async def test_list_combined_templates_storage_failure(session, monkeypatch):
    async def failing_execute(*args, **kwargs):
        raise OperationalError("SELECT users_and_templates", {}, Exception("disk I/O error"))

    monkeypatch.setattr(session, "execute", failing_execute)

    with pytest.raises(StorageUnavailable):
        await TemplateAggregator(session).list_combined_templates()
