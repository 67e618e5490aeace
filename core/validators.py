import re
import ipaddress

ADDRESS_LIST_NAME_RE = re.compile(r"[A-Za-z0-9-]+")

# Только безопасные символы: комментарий попадает в строку RouterOS-скрипта
COMMENT_RE = re.compile(r"[A-Za-zА-Яа-яЁё0-9 ,.:-]+")

FQDN_RE = re.compile(
    r"([a-zA-Z0-9][a-zA-Z0-9_-]{0,62})"
    r"(\.[a-zA-Z0-9_][a-zA-Z0-9_-]{0,62})*?"
    r"(\.[a-zA-Z][a-zA-Z0-9]{0,62})\.?"
)


def is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
        return True
    except ValueError:
        return False


def is_fqdn(value: str) -> bool:
    if not value or len(value.rstrip(".")) > 253:
        return False
    return FQDN_RE.fullmatch(value) is not None


def is_address(value: str) -> bool:
    """An address-list entry is either a dotted-quad IPv4 or an FQDN."""
    return is_ipv4(value) or is_fqdn(value)


def is_address_list_name(value: str) -> bool:
    return ADDRESS_LIST_NAME_RE.fullmatch(value) is not None


def is_comment(value: str) -> bool:
    return COMMENT_RE.fullmatch(value) is not None


def is_regexp(value: str) -> bool:
    """A regexp is quoted into a script line, so control characters are not allowed."""
    return not any(ord(c) < 0x20 or ord(c) == 0x7f for c in value)
