"""
MikroTik provisioning API: address lists and static DNS entries
rendered as JSON or RouterOS scripts.
"""

import sys
import argparse
import logging

import uvicorn

from api.routes import app
from core.config_loader import load_config
from core.errors import StorageError
from core.service import ProvisioningService
from storage.base import Storage
from storage.memory import MemoryStorage
from storage.mongo import MongoStorage

###############################################################################
# ЛОГГИРОВАНИЕ
###############################################################################
log = logging.getLogger("MikrotikProvisioning")


def setup_logging(level: str):
    logging.basicConfig(level=level.upper(), format='%(asctime)s [%(levelname)s] %(message)s')
    logging.getLogger("pymongo").setLevel(logging.WARNING)


###############################################################################
# ХРАНИЛИЩЕ
###############################################################################
def build_storage(db_config: dict) -> Storage:
    if db_config["backend"] == "memory":
        log.warning("Using in-memory storage: data is lost on restart")
        return MemoryStorage(timeout=db_config["timeout"])
    return MongoStorage.from_config(db_config)


def init_app(config: dict):
    """Wires storage, service and access users into the application state."""
    storage = build_storage(config["database"])
    app.state.service = ProvisioningService(storage, timeout=config["database"]["timeout"])
    app.state.access_users = config["access"]["users"]
    return app


###############################################################################
# ЗАПУСК
###############################################################################
def main():
    parser = argparse.ArgumentParser(description="MikroTik provisioning API")
    parser.add_argument('--config', default='config.yaml')
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config["logging"]["level"])

    try:
        init_app(config)
    except StorageError as e:
        log.error(f"Storage initialisation failed: {e}")
        sys.exit(1)

    uvicorn.run(
        app,
        host=config["api"]["listen_ip"],
        port=config["api"]["listen_port"],
        log_level=config["logging"]["level"].lower(),
    )


if __name__ == '__main__':
    try:
        main()
    except Exception:
        log.exception("Fatal error in main")
        sys.exit(1)
