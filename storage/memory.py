import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence

from core.errors import ConflictError, NotFoundError, StorageTimeoutError
from core.models import Action, Address, AddressList, StaticDNSEntry
from core.validation import ensure_action, ensure_valid
from storage.base import Storage

log = logging.getLogger("STORAGE")


class MemoryStorage(Storage):
    """
    Process-lifetime backend: records keyed by id plus a name -> id index.

    Every read and write goes through a single re-entrant lock. Records are
    copied on the way in and out so callers never hold stored instances.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._lock = threading.RLock()
        self._address_lists: Dict[str, AddressList] = {}
        self._address_list_names: Dict[str, str] = {}
        self._dns_entries: Dict[str, StaticDNSEntry] = {}
        self._dns_entry_names: Dict[str, str] = {}

    @contextmanager
    def _locked(self, timeout: Optional[float]):
        deadline = self.timeout if timeout is None else timeout
        if not self._lock.acquire(timeout=deadline):
            raise StorageTimeoutError(f"could not acquire storage lock within {deadline}s")
        try:
            yield
        finally:
            self._lock.release()

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex[:24]

    # --- address lists ---

    def create_address_list(self, address_list: AddressList, timeout: Optional[float] = None) -> AddressList:
        ensure_valid(address_list)
        with self._locked(timeout):
            if address_list.name in self._address_list_names:
                raise ConflictError(f"address list already exists: {address_list.name}")
            record = address_list.model_copy(update={"id": self._new_id()}, deep=True)
            self._address_lists[record.id] = record
            self._address_list_names[record.name] = record.id
            log.info(f"Address list '{record.name}' stored with id {record.id}")
            return record.model_copy(deep=True)

    def get_all_address_lists(self, timeout: Optional[float] = None) -> List[AddressList]:
        with self._locked(timeout):
            return [ensure_valid(a).model_copy(deep=True) for a in self._address_lists.values()]

    def get_address_list_by_name(self, name: str, timeout: Optional[float] = None) -> Optional[AddressList]:
        with self._locked(timeout):
            id = self._address_list_names.get(name)
            if id is None:
                return None
            return ensure_valid(self._address_lists[id]).model_copy(deep=True)

    def get_address_list_by_id(self, id: str, timeout: Optional[float] = None) -> Optional[AddressList]:
        with self._locked(timeout):
            record = self._address_lists.get(id)
            if record is None:
                return None
            return ensure_valid(record).model_copy(deep=True)

    def update_address_list_by_id(self, id: str, address_list: AddressList,
                                  timeout: Optional[float] = None) -> AddressList:
        ensure_valid(address_list)
        with self._locked(timeout):
            current = self._address_lists.get(id)
            if current is None:
                raise NotFoundError(f"address list not found: {id}")
            owner = self._address_list_names.get(address_list.name)
            if owner is not None and owner != id:
                raise ConflictError(f"address list already exists: {address_list.name}")

            record = address_list.model_copy(update={"id": id}, deep=True)
            del self._address_list_names[current.name]
            self._address_list_names[record.name] = id
            self._address_lists[id] = record
            return record.model_copy(deep=True)

    def update_entries_in_address_list(self, action: Action, id: str, addresses: Sequence[Address],
                                       timeout: Optional[float] = None) -> AddressList:
        ensure_action(action)
        for address in addresses:
            ensure_valid(address)

        with self._locked(timeout):
            current = self._address_lists.get(id)
            if current is None:
                raise NotFoundError(f"address list not found: {id}")

            entries = list(current.addresses)
            if action == "add":
                for address in addresses:
                    if address not in entries:
                        entries.append(address)
            else:
                entries = [a for a in entries if a not in addresses]

            self._address_lists[id] = current.model_copy(update={"addresses": entries}, deep=True)
            return self._address_lists[id].model_copy(deep=True)

    def delete_address_list_by_id(self, id: str, timeout: Optional[float] = None) -> None:
        with self._locked(timeout):
            record = self._address_lists.pop(id, None)
            if record is None:
                raise NotFoundError(f"address list not found: {id}")
            del self._address_list_names[record.name]
            log.info(f"Address list '{record.name}' ({id}) deleted")

    # --- static DNS ---

    def create_static_dns_entry(self, entry: StaticDNSEntry, timeout: Optional[float] = None) -> StaticDNSEntry:
        ensure_valid(entry)
        with self._locked(timeout):
            if entry.name in self._dns_entry_names:
                raise ConflictError(f"static DNS entry already exists: {entry.name}")
            record = entry.model_copy(update={"id": self._new_id()})
            self._dns_entries[record.id] = record
            self._dns_entry_names[record.name] = record.id
            log.info(f"Static DNS entry '{record.name}' stored with id {record.id}")
            return record.model_copy()

    def get_all_static_dns_entries(self, timeout: Optional[float] = None) -> List[StaticDNSEntry]:
        with self._locked(timeout):
            return [ensure_valid(e).model_copy() for e in self._dns_entries.values()]

    def get_static_dns_entry_by_name(self, name: str, timeout: Optional[float] = None) -> Optional[StaticDNSEntry]:
        with self._locked(timeout):
            id = self._dns_entry_names.get(name)
            if id is None:
                return None
            return ensure_valid(self._dns_entries[id]).model_copy()

    def get_static_dns_entry_by_id(self, id: str, timeout: Optional[float] = None) -> Optional[StaticDNSEntry]:
        with self._locked(timeout):
            record = self._dns_entries.get(id)
            if record is None:
                return None
            return ensure_valid(record).model_copy()

    def update_static_dns_entry_by_id(self, id: str, entry: StaticDNSEntry,
                                      timeout: Optional[float] = None) -> StaticDNSEntry:
        ensure_valid(entry)
        with self._locked(timeout):
            current = self._dns_entries.get(id)
            if current is None:
                raise NotFoundError(f"static DNS entry not found: {id}")
            owner = self._dns_entry_names.get(entry.name)
            if owner is not None and owner != id:
                raise ConflictError(f"static DNS entry already exists: {entry.name}")

            record = entry.model_copy(update={"id": id})
            del self._dns_entry_names[current.name]
            self._dns_entry_names[record.name] = id
            self._dns_entries[id] = record
            return record.model_copy()

    def update_static_dns_entry_by_name(self, name: str, entry: StaticDNSEntry,
                                        timeout: Optional[float] = None) -> StaticDNSEntry:
        with self._locked(timeout):
            id = self._dns_entry_names.get(name)
            if id is None:
                raise NotFoundError(f"static DNS entry not found: {name}")
            return self.update_static_dns_entry_by_id(id, entry, timeout=timeout)

    def delete_static_dns_entry_by_id(self, id: str, timeout: Optional[float] = None) -> None:
        with self._locked(timeout):
            record = self._dns_entries.pop(id, None)
            if record is None:
                raise NotFoundError(f"static DNS entry not found: {id}")
            del self._dns_entry_names[record.name]
            log.info(f"Static DNS entry '{record.name}' ({id}) deleted")
