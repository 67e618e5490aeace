"""
Storage contract shared by every backend.

All operations accept an optional `timeout` in seconds; when omitted the
backend falls back to its configured default deadline.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from core.errors import BatchError, ProvisioningError
from core.models import Action, Address, AddressList, StaticDNSEntry
from core.validation import ensure_valid


class Storage(ABC):

    # --- address lists ---

    @abstractmethod
    def create_address_list(self, address_list: AddressList, timeout: Optional[float] = None) -> AddressList:
        """Persists a new list and returns it with its assigned id. ConflictError on a taken name."""

    @abstractmethod
    def get_all_address_lists(self, timeout: Optional[float] = None) -> List[AddressList]:
        ...

    @abstractmethod
    def get_address_list_by_name(self, name: str, timeout: Optional[float] = None) -> Optional[AddressList]:
        """Returns None when no list carries `name`."""

    @abstractmethod
    def get_address_list_by_id(self, id: str, timeout: Optional[float] = None) -> Optional[AddressList]:
        ...

    @abstractmethod
    def update_address_list_by_id(self, id: str, address_list: AddressList,
                                  timeout: Optional[float] = None) -> AddressList:
        """Full replace. NotFoundError for an unknown id."""

    @abstractmethod
    def update_entries_in_address_list(self, action: Action, id: str, addresses: Sequence[Address],
                                       timeout: Optional[float] = None) -> AddressList:
        """
        Applies an add/remove patch and returns the list as stored afterwards.

        "add" skips addresses already present, "remove" ignores addresses that
        are absent. Neither case is an error.
        """

    @abstractmethod
    def delete_address_list_by_id(self, id: str, timeout: Optional[float] = None) -> None:
        """NotFoundError when nothing was deleted."""

    # --- static DNS ---

    @abstractmethod
    def create_static_dns_entry(self, entry: StaticDNSEntry, timeout: Optional[float] = None) -> StaticDNSEntry:
        ...

    @abstractmethod
    def get_all_static_dns_entries(self, timeout: Optional[float] = None) -> List[StaticDNSEntry]:
        ...

    @abstractmethod
    def get_static_dns_entry_by_name(self, name: str, timeout: Optional[float] = None) -> Optional[StaticDNSEntry]:
        ...

    @abstractmethod
    def get_static_dns_entry_by_id(self, id: str, timeout: Optional[float] = None) -> Optional[StaticDNSEntry]:
        ...

    @abstractmethod
    def update_static_dns_entry_by_id(self, id: str, entry: StaticDNSEntry,
                                      timeout: Optional[float] = None) -> StaticDNSEntry:
        ...

    @abstractmethod
    def update_static_dns_entry_by_name(self, name: str, entry: StaticDNSEntry,
                                        timeout: Optional[float] = None) -> StaticDNSEntry:
        ...

    @abstractmethod
    def delete_static_dns_entry_by_id(self, id: str, timeout: Optional[float] = None) -> None:
        ...

    # --- batches ---

    def create_static_dns_entries(self, entries: Sequence[StaticDNSEntry],
                                  timeout: Optional[float] = None) -> List[StaticDNSEntry]:
        """
        Creates entries one by one. Not atomic: the first failure stops the
        batch and is raised as a BatchError carrying what was already written.
        """
        return self._run_batch(entries, lambda e: self.create_static_dns_entry(e, timeout=timeout))

    def update_static_dns_entries(self, entries: Sequence[StaticDNSEntry],
                                  timeout: Optional[float] = None) -> List[StaticDNSEntry]:
        """Replaces entries matched by name. Same failure semantics as creation."""
        return self._run_batch(entries, lambda e: self.update_static_dns_entry_by_name(e.name, e, timeout=timeout))

    @staticmethod
    def _run_batch(entries, apply) -> List[StaticDNSEntry]:
        entries = list(entries)
        applied = []
        for index, entry in enumerate(entries):
            try:
                ensure_valid(entry)
                applied.append(apply(entry))
            except ProvisioningError as e:
                skipped = [rest.name for rest in entries[index + 1:]]
                raise BatchError(e, applied, entry.name, skipped) from e
        return applied
