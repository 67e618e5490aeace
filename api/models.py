from pydantic import BaseModel
from typing import List, Dict
from datetime import datetime

from core.models import Action, Address, StaticDNSEntry


class AddressListPatchRequest(BaseModel):
    action: Action
    addresses: List[Address]


class StaticDNSBatchRequest(BaseModel):
    entries: List[StaticDNSEntry]


class ErrorResponse(BaseModel):
    detail: str


class BatchErrorResponse(BaseModel):
    detail: str
    applied: List[StaticDNSEntry]
    failed: str
    skipped: List[str]


class HealthCheckResponse(BaseModel):
    status: str
    timestamp: datetime
    components: Dict[str, str]

