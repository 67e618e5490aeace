import os

import mongomock
import pytest

from core.config_loader import load_config
from core.service import ProvisioningService
from storage.memory import MemoryStorage
from storage.mongo import MongoStorage

CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config.yaml")


@pytest.fixture(scope="session")
def config():
    return load_config(CONFIG_PATH)


@pytest.fixture
def memory_storage():
    return MemoryStorage(timeout=1)


@pytest.fixture
def mongo_storage(config):
    database = mongomock.MongoClient()[config["database"]["name"]]
    storage = MongoStorage(database, config["database"]["collections"], timeout=1)
    storage.ensure_indexes()
    return storage


@pytest.fixture(params=["memory", "mongo"])
def storage(request):
    # Оба бэкенда обязаны вести себя одинаково
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def service(memory_storage):
    return ProvisioningService(memory_storage, timeout=1)


@pytest.fixture
def auth_headers(config):
    user = config["access"]["users"][0]
    return {"Authorization": f"{user['access_key']}:{user['secret_key']}"}
