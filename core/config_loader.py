import os
import re
import yaml
import ipaddress
import logging

log = logging.getLogger("CONFIG")

ACCESS_KEY_RE = re.compile(r"[A-Z0-9]{24}")
SECRET_KEY_RE = re.compile(r"[a-f0-9]{64}")
DB_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")

BACKENDS = ("mongo", "memory")
RESOURCES = ("address-list", "static-dns")

DEFAULT_COLLECTIONS = {
    "address-list": "address_lists",
    "static-dns": "static_dns",
}


class ConfigValidationError(ValueError):
    pass


def load_config(path: str) -> dict:
    """
    Загружает и валидирует конфигурационный файл YAML
    Возвращает нормализованный конфиг словарем
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML syntax: {e}")

    if not isinstance(config, dict):
        raise ConfigValidationError("Config root must be a mapping")

    config = validate_config(config)
    log.info(f"Loaded valid config from {path}")
    return config


def validate_config(config: dict) -> dict:
    """Validates an already parsed config and fills in defaults."""
    config.setdefault('api', {})
    config.setdefault('logging', {})
    config.setdefault('access', {})
    config.setdefault('database', {})

    for section, key in [('api', 'listen_ip'), ('api', 'listen_port')]:
        if not config[section].get(key):
            raise ConfigValidationError(f"Missing required config value: {section}.{key}")

    try:
        ipaddress.ip_address(config['api']['listen_ip'])
    except ValueError as e:
        raise ConfigValidationError(f"Invalid IP address: {e}")

    port = config['api']['listen_port']
    if not isinstance(port, int) or not (1 <= port <= 65535):
        raise ConfigValidationError("Invalid API port number")

    config['logging'].setdefault('level', 'INFO')

    validate_access_config(config['access'])
    validate_database_config(config['database'])
    return config


def validate_access_config(access_cfg: dict):
    """Проверка пар access_key/secret_key"""
    users = access_cfg.get('users')
    if not isinstance(users, list) or not users:
        raise ConfigValidationError("access.users must be a non-empty list")

    for user in users:
        if not isinstance(user, dict):
            raise ConfigValidationError("Access user must be a dictionary")
        if not ACCESS_KEY_RE.fullmatch(str(user.get('access_key', ''))):
            raise ConfigValidationError("access_key must be 24 characters of [A-Z0-9]")
        if not SECRET_KEY_RE.fullmatch(str(user.get('secret_key', ''))):
            raise ConfigValidationError(
                f"secret_key for {user['access_key']} must be 64 characters of [a-f0-9]"
            )


def validate_database_config(db_cfg: dict):
    """Валидация раздела database, заполнение коллекций по умолчанию"""
    db_cfg.setdefault('backend', 'mongo')
    db_cfg.setdefault('timeout', 5)

    if db_cfg['backend'] not in BACKENDS:
        raise ConfigValidationError(
            f"Invalid database backend: {db_cfg['backend']}. Supported: {', '.join(BACKENDS)}"
        )

    timeout = db_cfg['timeout']
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigValidationError("database.timeout must be a positive number of seconds")

    if db_cfg['backend'] == 'mongo':
        dsn = db_cfg.get('dsn')
        if not dsn or not str(dsn).startswith(('mongodb://', 'mongodb+srv://')):
            raise ConfigValidationError("database.dsn must be a mongodb:// or mongodb+srv:// URI")
        if not DB_NAME_RE.fullmatch(str(db_cfg.get('name', ''))):
            raise ConfigValidationError("database.name is required and must be alphanumeric")

    collections = db_cfg.setdefault('collections', [])
    if not isinstance(collections, list):
        raise ConfigValidationError("database.collections must be a list")

    seen = set()
    for coll in collections:
        if not isinstance(coll, dict):
            raise ConfigValidationError("Collection must be a dictionary")
        resource = coll.get('resource')
        if resource not in RESOURCES:
            raise ConfigValidationError(f"Unknown collection resource: {resource}")
        if resource in seen:
            raise ConfigValidationError(f"Duplicate collection resource: {resource}")
        seen.add(resource)
        if not DB_NAME_RE.fullmatch(str(coll.get('name', ''))):
            raise ConfigValidationError(f"Invalid collection name for {resource}: {coll.get('name')}")
        coll.setdefault('indexes', [])
        for index in coll['indexes']:
            if not index.get('name') or not index.get('field'):
                raise ConfigValidationError(f"Index for {resource} needs both name and field: {index}")
            index.setdefault('unique', False)

    # Уникальный индекс по name нужен всегда
    for resource in RESOURCES:
        if resource not in seen:
            collections.append({
                'resource': resource,
                'name': DEFAULT_COLLECTIONS[resource],
                'indexes': [],
            })
    for coll in collections:
        if not any(i['field'] == 'name' and i['unique'] for i in coll['indexes']):
            coll['indexes'].append({'name': 'name_unique', 'field': 'name', 'unique': True})
