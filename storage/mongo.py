import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence

import pymongo
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from core.errors import ConflictError, NotFoundError, StorageError, StorageTimeoutError
from core.models import Action, Address, AddressList, StaticDNSEntry
from core.validation import ensure_action, ensure_valid, parse_model
from storage.base import Storage

log = logging.getLogger("STORAGE")

ADDRESS_LIST = "address-list"
STATIC_DNS = "static-dns"


def _object_id(id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(id)
    except (InvalidId, TypeError):
        return None


def _address_list_doc(address_list: AddressList) -> dict:
    return address_list.model_dump()


def _dns_entry_doc(entry: StaticDNSEntry) -> dict:
    # ttl хранится в секундах
    return entry.model_dump()


def _to_address_list(doc: dict) -> AddressList:
    return parse_model(AddressList, {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "addresses": doc.get("addresses") or [],
    })


def _to_dns_entry(doc: dict) -> StaticDNSEntry:
    data = {k: v for k, v in doc.items() if k != "_id"}
    data["id"] = str(doc["_id"])
    return parse_model(StaticDNSEntry, data)


class MongoStorage(Storage):
    """
    MongoDB backend. One document per record; `name` is guarded by a unique
    index on both collections, which is the authoritative uniqueness check.
    """

    def __init__(self, database, collections: List[dict], timeout: float = 5.0):
        self.timeout = timeout
        self._indexes: Dict[str, List[dict]] = {}
        self._collections = {}
        for coll in collections:
            self._collections[coll["resource"]] = database[coll["name"]]
            self._indexes[coll["resource"]] = coll.get("indexes", [])
        for resource in (ADDRESS_LIST, STATIC_DNS):
            if resource not in self._collections:
                raise StorageError(f"no collection configured for resource '{resource}'")

    @classmethod
    def from_config(cls, db_config: dict) -> "MongoStorage":
        """Connects, pings and makes sure the configured indexes exist."""
        timeout = db_config.get("timeout", 5)
        options = {
            "connectTimeoutMS": int(timeout * 1000),
            "serverSelectionTimeoutMS": int(timeout * 1000),
        }
        if db_config["dsn"].startswith("mongodb://"):
            options["directConnection"] = True

        client = MongoClient(db_config["dsn"], **options)
        try:
            with pymongo.timeout(timeout):
                client.admin.command("ping")
        except PyMongoError as e:
            raise StorageError(f"failed to ping mongodb: {e}") from e

        storage = cls(client[db_config["name"]], db_config["collections"], timeout=timeout)
        storage.ensure_indexes()
        log.info(f"Connected to mongodb database '{db_config['name']}'")
        return storage

    def ensure_indexes(self) -> None:
        """Creates configured indexes that are missing. Existing names are left alone."""
        for resource, indexes in self._indexes.items():
            collection = self._collections[resource]
            with self._deadline(None):
                existing = collection.index_information()
                for index in indexes:
                    if index["name"] in existing:
                        continue
                    collection.create_index(
                        [(index["field"], ASCENDING)],
                        name=index["name"],
                        unique=index.get("unique", False),
                    )
                    log.info(f"Created index '{index['name']}' on {collection.name}.{index['field']}")

    @contextmanager
    def _deadline(self, timeout: Optional[float], conflict: str = "duplicate key"):
        try:
            with pymongo.timeout(self.timeout if timeout is None else timeout):
                yield
        except DuplicateKeyError as e:
            raise ConflictError(conflict) from e
        except PyMongoError as e:
            if e.timeout:
                raise StorageTimeoutError(f"mongodb operation timed out: {e}") from e
            raise StorageError(f"mongodb operation failed: {e}") from e

    # --- address lists ---

    def create_address_list(self, address_list: AddressList, timeout: Optional[float] = None) -> AddressList:
        ensure_valid(address_list)
        with self._deadline(timeout, f"address list already exists: {address_list.name}"):
            res = self._collections[ADDRESS_LIST].insert_one(_address_list_doc(address_list))
        log.info(f"Address list '{address_list.name}' stored with id {res.inserted_id}")
        return address_list.model_copy(update={"id": str(res.inserted_id)}, deep=True)

    def get_all_address_lists(self, timeout: Optional[float] = None) -> List[AddressList]:
        with self._deadline(timeout):
            docs = list(self._collections[ADDRESS_LIST].find({}))
        return [_to_address_list(doc) for doc in docs]

    def get_address_list_by_name(self, name: str, timeout: Optional[float] = None) -> Optional[AddressList]:
        with self._deadline(timeout):
            doc = self._collections[ADDRESS_LIST].find_one({"name": name})
        return _to_address_list(doc) if doc else None

    def get_address_list_by_id(self, id: str, timeout: Optional[float] = None) -> Optional[AddressList]:
        oid = _object_id(id)
        if oid is None:
            return None
        with self._deadline(timeout):
            doc = self._collections[ADDRESS_LIST].find_one({"_id": oid})
        return _to_address_list(doc) if doc else None

    def update_address_list_by_id(self, id: str, address_list: AddressList,
                                  timeout: Optional[float] = None) -> AddressList:
        ensure_valid(address_list)
        oid = _object_id(id)
        if oid is None:
            raise NotFoundError(f"address list not found: {id}")
        with self._deadline(timeout, f"address list already exists: {address_list.name}"):
            doc = self._collections[ADDRESS_LIST].find_one_and_replace(
                {"_id": oid},
                _address_list_doc(address_list),
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(f"address list not found: {id}")
        return _to_address_list(doc)

    def update_entries_in_address_list(self, action: Action, id: str, addresses: Sequence[Address],
                                       timeout: Optional[float] = None) -> AddressList:
        """
        Reads the list, computes the delta and applies it with $push/$pullAll.
        The read and the write are separate round-trips, so concurrent patches
        to the same list may interleave.
        """
        ensure_action(action)
        for address in addresses:
            ensure_valid(address)
        oid = _object_id(id)
        if oid is None:
            raise NotFoundError(f"address list not found: {id}")

        collection = self._collections[ADDRESS_LIST]
        with self._deadline(timeout):
            raw = collection.find_one({"_id": oid})
        if raw is None:
            raise NotFoundError(f"address list not found: {id}")
        current = _to_address_list(raw)

        if action == "add":
            delta = []
            for address in addresses:
                if address not in current.addresses and address not in delta:
                    delta.append(address)
            update = {"$push": {"addresses": {"$each": [a.model_dump() for a in delta]}}}
        else:
            # удаляем ровно те поддокументы, что лежат в базе
            delta = [item for item in raw.get("addresses") or []
                     if parse_model(Address, item) in addresses]
            update = {"$pullAll": {"addresses": delta}}

        if delta:
            with self._deadline(timeout):
                doc = collection.find_one_and_update({"_id": oid}, update, return_document=ReturnDocument.AFTER)
            if doc is None:
                raise NotFoundError(f"address list not found: {id}")
            return _to_address_list(doc)

        return self.get_address_list_by_id(id, timeout=timeout) or current

    def delete_address_list_by_id(self, id: str, timeout: Optional[float] = None) -> None:
        oid = _object_id(id)
        if oid is None:
            raise NotFoundError(f"address list not found: {id}")
        with self._deadline(timeout):
            res = self._collections[ADDRESS_LIST].delete_one({"_id": oid})
        if res.deleted_count == 0:
            raise NotFoundError(f"address list not found: {id}")
        log.info(f"Address list {id} deleted")

    # --- static DNS ---

    def create_static_dns_entry(self, entry: StaticDNSEntry, timeout: Optional[float] = None) -> StaticDNSEntry:
        ensure_valid(entry)
        with self._deadline(timeout, f"static DNS entry already exists: {entry.name}"):
            res = self._collections[STATIC_DNS].insert_one(_dns_entry_doc(entry))
        log.info(f"Static DNS entry '{entry.name}' stored with id {res.inserted_id}")
        return entry.model_copy(update={"id": str(res.inserted_id)})

    def get_all_static_dns_entries(self, timeout: Optional[float] = None) -> List[StaticDNSEntry]:
        with self._deadline(timeout):
            docs = list(self._collections[STATIC_DNS].find({}))
        return [_to_dns_entry(doc) for doc in docs]

    def get_static_dns_entry_by_name(self, name: str, timeout: Optional[float] = None) -> Optional[StaticDNSEntry]:
        with self._deadline(timeout):
            doc = self._collections[STATIC_DNS].find_one({"name": name})
        return _to_dns_entry(doc) if doc else None

    def get_static_dns_entry_by_id(self, id: str, timeout: Optional[float] = None) -> Optional[StaticDNSEntry]:
        oid = _object_id(id)
        if oid is None:
            return None
        with self._deadline(timeout):
            doc = self._collections[STATIC_DNS].find_one({"_id": oid})
        return _to_dns_entry(doc) if doc else None

    def update_static_dns_entry_by_id(self, id: str, entry: StaticDNSEntry,
                                      timeout: Optional[float] = None) -> StaticDNSEntry:
        oid = _object_id(id)
        if oid is None:
            raise NotFoundError(f"static DNS entry not found: {id}")
        return self._replace_dns_entry({"_id": oid}, entry, id, timeout)

    def update_static_dns_entry_by_name(self, name: str, entry: StaticDNSEntry,
                                        timeout: Optional[float] = None) -> StaticDNSEntry:
        return self._replace_dns_entry({"name": name}, entry, name, timeout)

    def _replace_dns_entry(self, query: dict, entry: StaticDNSEntry, key: str,
                           timeout: Optional[float]) -> StaticDNSEntry:
        ensure_valid(entry)
        with self._deadline(timeout, f"static DNS entry already exists: {entry.name}"):
            doc = self._collections[STATIC_DNS].find_one_and_replace(
                query,
                _dns_entry_doc(entry),
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(f"static DNS entry not found: {key}")
        return _to_dns_entry(doc)

    def delete_static_dns_entry_by_id(self, id: str, timeout: Optional[float] = None) -> None:
        oid = _object_id(id)
        if oid is None:
            raise NotFoundError(f"static DNS entry not found: {id}")
        with self._deadline(timeout):
            res = self._collections[STATIC_DNS].delete_one({"_id": oid})
        if res.deleted_count == 0:
            raise NotFoundError(f"static DNS entry not found: {id}")
        log.info(f"Static DNS entry {id} deleted")
