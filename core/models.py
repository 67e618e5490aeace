from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator

from core.duration import format_duration, parse_duration
from core.validators import is_address, is_address_list_name, is_comment, is_fqdn, is_ipv4, is_regexp

Action = Literal["add", "remove"]

ACTIONS = ("add", "remove")


def _check_comment(value: str) -> str:
    if value and not is_comment(value):
        raise ValueError(f"comment contains disallowed characters: {value!r}")
    return value


class Address(BaseModel):
    address: str
    disabled: bool = False
    comment: str = ""

    model_config = {"frozen": True}

    @field_validator("address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"address must be an IPv4 address or an FQDN: {value!r}")
        return value

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, value: str) -> str:
        return _check_comment(value)


class AddressList(BaseModel):
    # id выдаёт хранилище, наружу не отдаётся
    id: Optional[str] = Field(default=None, exclude=True)
    name: str
    addresses: List[Address]

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not is_address_list_name(value):
            raise ValueError(f"address list name must match [A-Za-z0-9-]+: {value!r}")
        return value

    @field_validator("addresses")
    @classmethod
    def drop_duplicates(cls, value: List[Address]) -> List[Address]:
        unique = []
        for address in value:
            if address not in unique:
                unique.append(address)
        return unique


class StaticDNSEntry(BaseModel):
    id: Optional[str] = Field(default=None, exclude=True)
    name: str
    regexp: Optional[str] = None
    address: str
    ttl: int = Field(ge=0)
    disabled: bool = False
    comment: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not is_fqdn(value):
            raise ValueError(f"name must be an FQDN: {value!r}")
        return value

    @field_validator("address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        if not is_ipv4(value):
            raise ValueError(f"address must be an IPv4 address: {value!r}")
        return value

    @field_validator("regexp")
    @classmethod
    def validate_regexp(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_regexp(value):
            raise ValueError(f"regexp contains control characters: {value!r}")
        return value

    @field_validator("ttl", mode="before")
    @classmethod
    def parse_ttl(cls, value: Union[str, int]) -> int:
        if isinstance(value, str):
            return parse_duration(value)
        return value

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, value: str) -> str:
        return _check_comment(value)

    @field_serializer("ttl", when_used="json")
    def serialize_ttl(self, value: int) -> str:
        return format_duration(value)
