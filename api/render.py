"""RouterOS script (.rsc) rendering of address lists and static DNS entries."""
from typing import Iterable

from core.duration import format_duration
from core.models import AddressList, StaticDNSEntry


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


# Экранирование внутри кавычек RouterOS
QUOTE_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "$": "\\$",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _quote(value: str) -> str:
    escaped = "".join(QUOTE_ESCAPES.get(c, c) for c in value)
    return f'"{escaped}"'


def render_address_list(address_list: AddressList) -> str:
    lines = []
    for addr in address_list.addresses:
        line = (
            f"/ip firewall address-list add list={address_list.name} "
            f"address={addr.address} disabled={_yes_no(addr.disabled)}"
        )
        if addr.comment:
            line += f" comment={_quote(addr.comment)}"
        lines.append(line + "\n")
    return "".join(lines)


def render_address_lists(address_lists: Iterable[AddressList]) -> str:
    return "".join(render_address_list(a) for a in address_lists)


def render_static_dns_entry(entry: StaticDNSEntry) -> str:
    line = (
        f"/ip dns static add name={entry.name} address={entry.address} "
        f"ttl={format_duration(entry.ttl)} disabled={_yes_no(entry.disabled)}"
    )
    if entry.regexp:
        line += f" regexp={_quote(entry.regexp)}"
    if entry.comment:
        line += f" comment={_quote(entry.comment)}"
    return line + "\n"


def render_static_dns_entries(entries: Iterable[StaticDNSEntry]) -> str:
    return "".join(render_static_dns_entry(e) for e in entries)
