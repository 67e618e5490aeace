import threading

import pytest

from core.errors import BatchError, ConflictError, NotFoundError, StorageTimeoutError, ValidationError
from core.models import Address, AddressList, StaticDNSEntry


def make_list(name="blocklist", *addresses):
    return AddressList(name=name, addresses=[Address(address=a) for a in addresses])


def make_entry(name="a.example.com", address="1.2.3.4", ttl="1h", **kwargs):
    return StaticDNSEntry(name=name, address=address, ttl=ttl, **kwargs)


# ============================================
# Address lists
# ============================================

def test_create_assigns_id(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1"))
    assert created.id
    assert created.name == "office"
    assert created.addresses == [Address(address="10.0.0.1")]


def test_create_twice_conflicts(storage):
    storage.create_address_list(make_list("blocklist"))
    with pytest.raises(ConflictError):
        storage.create_address_list(make_list("blocklist"))


def test_get_by_name_absent_returns_none(storage):
    assert storage.get_address_list_by_name("missing") is None


def test_get_all(storage):
    storage.create_address_list(make_list("one"))
    storage.create_address_list(make_list("two"))
    assert sorted(a.name for a in storage.get_all_address_lists()) == ["one", "two"]


def test_update_by_id_replaces(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1"))
    updated = storage.update_address_list_by_id(created.id, make_list("branch", "10.0.0.2"))
    assert updated.id == created.id
    assert updated.name == "branch"
    assert storage.get_address_list_by_name("office") is None
    assert storage.get_address_list_by_name("branch").addresses == [Address(address="10.0.0.2")]


def test_update_unknown_id_not_found(storage):
    with pytest.raises(NotFoundError):
        storage.update_address_list_by_id("0123456789abcdef01234567", make_list("office"))


def test_patch_add_is_idempotent(storage):
    created = storage.create_address_list(make_list("office"))
    storage.update_entries_in_address_list("add", created.id, [Address(address="10.0.0.1")])
    result = storage.update_entries_in_address_list("add", created.id, [Address(address="10.0.0.1")])
    assert result.addresses == [Address(address="10.0.0.1")]


def test_patch_add_skips_duplicates_in_input(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1"))
    result = storage.update_entries_in_address_list("add", created.id, [
        Address(address="10.0.0.2"),
        Address(address="10.0.0.2"),
        Address(address="10.0.0.1"),
    ])
    assert [a.address for a in result.addresses] == ["10.0.0.1", "10.0.0.2"]


def test_patch_add_distinguishes_structurally(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1"))
    result = storage.update_entries_in_address_list("add", created.id, [Address(address="10.0.0.1", disabled=True)])
    assert len(result.addresses) == 2


def test_patch_remove(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1", "10.0.0.2"))
    result = storage.update_entries_in_address_list("remove", created.id, [Address(address="10.0.0.1")])
    assert result.addresses == [Address(address="10.0.0.2")]
    assert storage.get_address_list_by_name("office").addresses == [Address(address="10.0.0.2")]


def test_patch_remove_absent_is_noop(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1"))
    result = storage.update_entries_in_address_list("remove", created.id, [Address(address="10.9.9.9")])
    assert result.addresses == [Address(address="10.0.0.1")]


def test_patch_unknown_action(storage):
    created = storage.create_address_list(make_list("office"))
    with pytest.raises(ValidationError) as exc:
        storage.update_entries_in_address_list("replace", created.id, [])
    assert exc.value.field == "action"


def test_patch_unknown_id(storage):
    with pytest.raises(NotFoundError):
        storage.update_entries_in_address_list("add", "0123456789abcdef01234567", [Address(address="10.0.0.1")])


def test_delete(storage):
    created = storage.create_address_list(make_list("office"))
    storage.delete_address_list_by_id(created.id)
    assert storage.get_address_list_by_name("office") is None


def test_delete_unknown_id_not_found(storage):
    with pytest.raises(NotFoundError):
        storage.delete_address_list_by_id("0123456789abcdef01234567")
    with pytest.raises(NotFoundError):
        storage.delete_address_list_by_id("not-an-id")


def test_returned_records_are_copies(storage):
    created = storage.create_address_list(make_list("office", "10.0.0.1"))
    created.addresses.append(Address(address="10.0.0.99"))
    assert storage.get_address_list_by_name("office").addresses == [Address(address="10.0.0.1")]


# ============================================
# Static DNS
# ============================================

def test_dns_create_and_get(storage):
    storage.create_static_dns_entry(make_entry(ttl="1h"))
    entry = storage.get_static_dns_entry_by_name("a.example.com")
    assert entry.ttl == 3600
    assert entry.id
    assert storage.get_static_dns_entry_by_id(entry.id) == entry


def test_dns_create_twice_conflicts(storage):
    storage.create_static_dns_entry(make_entry())
    with pytest.raises(ConflictError):
        storage.create_static_dns_entry(make_entry(address="5.6.7.8"))


def test_dns_update_and_delete(storage):
    created = storage.create_static_dns_entry(make_entry())
    updated = storage.update_static_dns_entry_by_id(created.id, make_entry(address="5.6.7.8", ttl="30m"))
    assert updated.address == "5.6.7.8"
    assert updated.ttl == 1800
    storage.delete_static_dns_entry_by_id(created.id)
    assert storage.get_static_dns_entry_by_name("a.example.com") is None
    with pytest.raises(NotFoundError):
        storage.delete_static_dns_entry_by_id(created.id)


def test_dns_batch_create(storage):
    created = storage.create_static_dns_entries([make_entry("a.example.com"), make_entry("b.example.com")])
    assert [e.name for e in created] == ["a.example.com", "b.example.com"]
    assert all(e.id for e in created)


def test_dns_batch_create_reports_partial_result(storage):
    storage.create_static_dns_entry(make_entry("b.example.com"))
    with pytest.raises(BatchError) as exc:
        storage.create_static_dns_entries([
            make_entry("a.example.com"),
            make_entry("b.example.com"),
            make_entry("c.example.com"),
        ])
    assert isinstance(exc.value.cause, ConflictError)
    assert [e.name for e in exc.value.applied] == ["a.example.com"]
    assert exc.value.failed == "b.example.com"
    assert exc.value.skipped == ["c.example.com"]
    assert storage.get_static_dns_entry_by_name("c.example.com") is None


def test_dns_batch_update_by_name(storage):
    storage.create_static_dns_entries([make_entry("a.example.com"), make_entry("b.example.com")])
    updated = storage.update_static_dns_entries([make_entry("b.example.com", address="9.9.9.9")])
    assert updated[0].address == "9.9.9.9"
    assert storage.get_static_dns_entry_by_name("a.example.com").address == "1.2.3.4"


def test_dns_batch_update_unknown_name(storage):
    storage.create_static_dns_entry(make_entry("a.example.com"))
    with pytest.raises(BatchError) as exc:
        storage.update_static_dns_entries([
            make_entry("a.example.com", address="9.9.9.9"),
            make_entry("missing.example.com"),
        ])
    assert isinstance(exc.value.cause, NotFoundError)
    assert [e.name for e in exc.value.applied] == ["a.example.com"]
    assert exc.value.skipped == []


def test_dns_batch_stops_at_first_invalid_entry(storage):
    broken = StaticDNSEntry.model_construct(name="b.example.com", address="1.2.3.4", ttl=60,
                                            regexp=None, disabled=False, comment="<bad>")
    with pytest.raises(BatchError) as exc:
        storage.create_static_dns_entries([make_entry("a.example.com"), broken, make_entry("c.example.com")])
    assert isinstance(exc.value.cause, ValidationError)
    assert exc.value.skipped == ["c.example.com"]
    assert storage.get_static_dns_entry_by_name("c.example.com") is None


# ============================================
# Backend specifics
# ============================================

def test_memory_lock_timeout(memory_storage):
    acquired = threading.Event()
    release = threading.Event()

    def hold():
        with memory_storage._locked(None):
            acquired.set()
            release.wait(5)

    holder = threading.Thread(target=hold)
    holder.start()
    try:
        assert acquired.wait(5)
        with pytest.raises(StorageTimeoutError):
            memory_storage.get_all_address_lists(timeout=0.05)
    finally:
        release.set()
        holder.join()
