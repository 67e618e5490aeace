import pytest

from core.errors import BatchError, ConflictError, NotFoundError, ValidationError
from core.models import Address, AddressList, StaticDNSEntry


def test_address_list_end_to_end(service):
    created = service.create_address_list(AddressList(name="office", addresses=[]))
    service.update_entries_in_address_list("add", created.id, [Address(address="192.168.1.1")])

    stored = service.get_address_list_by_name("office")
    assert stored.addresses == [Address(address="192.168.1.1", disabled=False, comment="")]

    service.update_entries_in_address_list("remove", created.id, [Address(address="192.168.1.1")])
    assert service.get_address_list_by_name("office").addresses == []

    service.delete_address_list(created.id)
    assert service.get_address_lists() == []


def test_static_dns_end_to_end(service):
    service.create_static_dns_entry(StaticDNSEntry(name="a.example.com", address="1.2.3.4", ttl="1h"))
    entry = service.get_static_dns_entry_by_name("a.example.com")
    assert entry.ttl == 3600
    assert entry.model_dump(mode="json")["ttl"] == "1h"

    updated = service.update_static_dns_entry(entry.id, entry.model_copy(update={"disabled": True}))
    assert updated.disabled is True
    assert [e.name for e in service.get_static_dns_entries()] == ["a.example.com"]

    service.delete_static_dns_entry(entry.id)
    assert service.get_static_dns_entry_by_name("a.example.com") is None


def test_invalid_input_never_reaches_storage(service, memory_storage):
    broken = AddressList.model_construct(name="bad name", addresses=[])
    with pytest.raises(ValidationError):
        service.create_address_list(broken)
    assert memory_storage.get_all_address_lists() == []


def test_unknown_patch_action(service):
    created = service.create_address_list(AddressList(name="office", addresses=[]))
    with pytest.raises(ValidationError) as exc:
        service.update_entries_in_address_list("toggle", created.id, [Address(address="10.0.0.1")])
    assert exc.value.field == "action"


def test_invalid_batch_rejected_before_any_write(service):
    good = StaticDNSEntry(name="a.example.com", address="1.2.3.4", ttl=60)
    broken = StaticDNSEntry.model_construct(name="b.example.com", address="999.1.1.1", ttl=60,
                                            regexp=None, disabled=False, comment="")
    with pytest.raises(ValidationError):
        service.create_static_dns_entries([good, broken])
    assert service.get_static_dns_entries() == []


def test_storage_errors_propagate(service):
    service.create_address_list(AddressList(name="office", addresses=[]))
    with pytest.raises(ConflictError):
        service.create_address_list(AddressList(name="office", addresses=[]))
    with pytest.raises(NotFoundError):
        service.delete_address_list("0123456789abcdef01234567")


def test_batch_error_propagates(service):
    service.create_static_dns_entry(StaticDNSEntry(name="b.example.com", address="1.2.3.4", ttl=60))
    with pytest.raises(BatchError) as exc:
        service.create_static_dns_entries([
            StaticDNSEntry(name="a.example.com", address="1.2.3.4", ttl=60),
            StaticDNSEntry(name="b.example.com", address="1.2.3.4", ttl=60),
        ])
    assert exc.value.failed == "b.example.com"
