import json

import pytest
from botocore.exceptions import ClientError

from bio_verifier import (
    CommunityConfig,
    DynamoBackend,
    Identity,
    LocalFileBackend,
    PendingVerification,
    PersistenceError,
    VerificationStore,
    VerifiedRecord,
)
from tests.fakes import FakeTable


def client_error(operation: str = "PutItem") -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow"}},
        operation,
    )


def sample_pending(member_id: int = 7, community_id: int = 42) -> PendingVerification:
    return PendingVerification(
        identity=Identity(community_id, member_id),
        code="JAIME-12345",
        code_history=["JAIME-11111", "JAIME-22222"],
        handle="foo.bar",
        created_at="2025-01-01T00:00:00.000000Z",
    )


def build_store(tmp_path, *, durable: bool = True, mirror: bool = True):
    table = FakeTable()
    file_backend = LocalFileBackend(tmp_path / "data.json")
    store = VerificationStore(
        file_backend,
        DynamoBackend(table) if durable else None,
        mirror_to_file=mirror,
    )
    return store, table, file_backend


def test_pending_round_trip_through_durable_backend(tmp_path):
    store, table, _ = build_store(tmp_path)
    record = sample_pending()

    store.save_pending(record)

    assert ("COMMUNITY#42", "PENDING#7") in table.items
    assert store.get_pending(record.identity) == record


def test_pending_round_trip_through_local_file_only(tmp_path):
    store, _, file_backend = build_store(tmp_path, durable=False)
    record = sample_pending()

    store.save_pending(record)

    assert store.get_pending(record.identity) == record
    on_disk = json.loads(file_backend.path.read_text())
    assert on_disk["COMMUNITY#42|PENDING#7"]["code_history"] == [
        "JAIME-11111",
        "JAIME-22222",
    ]


def test_both_backends_hold_identical_items(tmp_path):
    store, table, file_backend = build_store(tmp_path)
    record = sample_pending()

    store.save_pending(record)

    assert file_backend.get(PendingVerification.key(record.identity)) == table.items[
        ("COMMUNITY#42", "PENDING#7")
    ]


def test_mirror_can_be_disabled(tmp_path):
    store, _, file_backend = build_store(tmp_path, mirror=False)

    store.save_pending(sample_pending())

    assert not file_backend.path.exists()


def test_durable_write_failure_falls_back_to_file(tmp_path):
    store, table, file_backend = build_store(tmp_path)
    table.fail_with = client_error()
    record = sample_pending()

    store.save_pending(record)

    assert table.items == {}
    assert file_backend.get(PendingVerification.key(record.identity)) is not None
    assert store.get_pending(record.identity) == record


def test_mirror_failure_does_not_fail_the_write(tmp_path):
    store, table, file_backend = build_store(tmp_path)
    file_backend.path.mkdir()  # a directory where the file should be

    store.save_pending(sample_pending())

    assert ("COMMUNITY#42", "PENDING#7") in table.items


def test_read_falls_back_to_file_for_pre_migration_records(tmp_path):
    store, table, file_backend = build_store(tmp_path)
    legacy = sample_pending(member_id=99)
    file_backend.put(legacy.to_item())

    assert store.get_pending(legacy.identity) == legacy
    assert [r.identity.member_id for r in store.list_pending(42)] == [99]


def test_delete_clears_both_backends(tmp_path):
    store, table, file_backend = build_store(tmp_path)
    record = sample_pending()
    store.save_pending(record)

    store.delete_pending(record.identity)

    assert store.get_pending(record.identity) is None
    assert table.items == {}
    assert file_backend.scan() == []


def test_local_file_failure_without_durable_backend_propagates(tmp_path):
    store, _, file_backend = build_store(tmp_path, durable=False)
    file_backend.path.mkdir()

    with pytest.raises(PersistenceError):
        store.save_pending(sample_pending())


def test_list_pending_is_scoped_to_community(tmp_path):
    store, _, _ = build_store(tmp_path)
    store.save_pending(sample_pending(member_id=1, community_id=42))
    store.save_pending(sample_pending(member_id=2, community_id=42))
    store.save_pending(sample_pending(member_id=3, community_id=43))
    store.save_verified(VerifiedRecord(Identity(42, 4), handle="bar"))

    assert sorted(r.identity.member_id for r in store.list_pending(42)) == [1, 2]
    assert sorted(r.identity.member_id for r in store.list_all_pending()) == [1, 2, 3]


def test_verified_records_overwrite(tmp_path):
    store, _, _ = build_store(tmp_path)
    identity = Identity(42, 5)
    store.save_verified(VerifiedRecord(identity, handle="first"))
    store.save_verified(VerifiedRecord(identity, handle="second"))

    records = store.list_verified(42)

    assert [record.handle for record in records] == ["second"]
    store.delete_verified(identity)
    assert store.get_verified(identity) is None


def test_community_config_round_trip(tmp_path):
    store, _, _ = build_store(tmp_path)

    store.save_config(CommunityConfig(community_id=42, trust_role_id=555))

    assert store.get_config(42) == CommunityConfig(42, 555)
    assert store.get_config(43) is None


def test_durable_listing_failure_uses_file(tmp_path):
    store, table, file_backend = build_store(tmp_path)
    store.save_pending(sample_pending(member_id=1))
    table.fail_with = client_error("Query")

    assert [r.identity.member_id for r in store.list_pending(42)] == [1]


def test_malformed_items_are_skipped(tmp_path):
    store, table, _ = build_store(tmp_path)
    table.items[("COMMUNITY#42", "PENDING#oops")] = {
        "pk": "COMMUNITY#42",
        "sk": "PENDING#oops",
    }
    store.save_pending(sample_pending(member_id=1))

    assert [r.identity.member_id for r in store.list_pending(42)] == [1]


def test_dynamo_backend_paginates_scan():
    class PagedTable:
        def __init__(self):
            self.calls = []

        def scan(self, **kwargs):
            self.calls.append(kwargs)
            if "ExclusiveStartKey" not in kwargs:
                return {"Items": [{"pk": "a", "sk": "1"}], "LastEvaluatedKey": {"pk": "a"}}
            return {"Items": [{"pk": "b", "sk": "2"}]}

    paged = PagedTable()

    items = DynamoBackend(paged).scan()

    assert [item["pk"] for item in items] == ["a", "b"]
    assert paged.calls[1] == {"ExclusiveStartKey": {"pk": "a"}}
