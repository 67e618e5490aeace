import logging
from typing import List, Optional, Sequence

from core.models import Action, Address, AddressList, StaticDNSEntry
from core.validation import ensure_action, ensure_valid
from storage.base import Storage

logger = logging.getLogger("SERVICE")


class ProvisioningService:
    """
    Use cases exposed to the HTTP layer.

    Input is validated before any storage call, so a rejected request never
    has side effects. Storage errors are propagated unchanged.
    """

    def __init__(self, storage: Storage, timeout: Optional[float] = None):
        self.storage = storage
        self.timeout = timeout

    # ============================================
    # Address lists
    # ============================================

    def create_address_list(self, address_list: AddressList) -> AddressList:
        ensure_valid(address_list)
        created = self.storage.create_address_list(address_list, timeout=self.timeout)
        logger.info(f"Created address list '{created.name}' with {len(created.addresses)} addresses")
        return created

    def get_address_lists(self) -> List[AddressList]:
        return self.storage.get_all_address_lists(timeout=self.timeout)

    def get_address_list_by_name(self, name: str) -> Optional[AddressList]:
        logger.debug(f"Looking up address list '{name}'")
        return self.storage.get_address_list_by_name(name, timeout=self.timeout)

    def update_address_list(self, id: str, address_list: AddressList) -> AddressList:
        ensure_valid(address_list)
        updated = self.storage.update_address_list_by_id(id, address_list, timeout=self.timeout)
        logger.info(f"Replaced address list {id} ('{updated.name}')")
        return updated

    def update_entries_in_address_list(self, action: Action, id: str, addresses: Sequence[Address]) -> AddressList:
        ensure_action(action)
        for address in addresses:
            ensure_valid(address)
        updated = self.storage.update_entries_in_address_list(action, id, addresses, timeout=self.timeout)
        logger.info(f"Applied '{action}' of {len(addresses)} addresses to list '{updated.name}'")
        return updated

    def delete_address_list(self, id: str) -> None:
        self.storage.delete_address_list_by_id(id, timeout=self.timeout)
        logger.info(f"Deleted address list {id}")

    # ============================================
    # Static DNS
    # ============================================

    def create_static_dns_entry(self, entry: StaticDNSEntry) -> StaticDNSEntry:
        ensure_valid(entry)
        created = self.storage.create_static_dns_entry(entry, timeout=self.timeout)
        logger.info(f"Created static DNS entry '{created.name}' -> {created.address}")
        return created

    def create_static_dns_entries(self, entries: Sequence[StaticDNSEntry]) -> List[StaticDNSEntry]:
        # Проверяем всю пачку до первой записи
        for entry in entries:
            ensure_valid(entry)
        created = self.storage.create_static_dns_entries(entries, timeout=self.timeout)
        logger.info(f"Created {len(created)} static DNS entries")
        return created

    def get_static_dns_entries(self) -> List[StaticDNSEntry]:
        return self.storage.get_all_static_dns_entries(timeout=self.timeout)

    def get_static_dns_entry_by_name(self, name: str) -> Optional[StaticDNSEntry]:
        logger.debug(f"Looking up static DNS entry '{name}'")
        return self.storage.get_static_dns_entry_by_name(name, timeout=self.timeout)

    def update_static_dns_entry(self, id: str, entry: StaticDNSEntry) -> StaticDNSEntry:
        ensure_valid(entry)
        updated = self.storage.update_static_dns_entry_by_id(id, entry, timeout=self.timeout)
        logger.info(f"Replaced static DNS entry {id} ('{updated.name}')")
        return updated

    def update_static_dns_entries(self, entries: Sequence[StaticDNSEntry]) -> List[StaticDNSEntry]:
        for entry in entries:
            ensure_valid(entry)
        updated = self.storage.update_static_dns_entries(entries, timeout=self.timeout)
        logger.info(f"Updated {len(updated)} static DNS entries")
        return updated

    def delete_static_dns_entry(self, id: str) -> None:
        self.storage.delete_static_dns_entry_by_id(id, timeout=self.timeout)
        logger.info(f"Deleted static DNS entry {id}")
