from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PostbackAccepted(BaseModel):
    accepted: bool = True
    conversion_id: int
    duplicate: bool = False


class PostbackRejected(BaseModel):
    accepted: bool = False
    reason: str
    message: str


class PostbackLogRead(BaseModel):
    id: int
    house_id: int
    event_label: str
    reason: str
    message: Optional[str] = None
    subid: Optional[str] = None
    customer_id: Optional[str] = None
    amount: Optional[str] = None
    raw_query: Optional[str] = None
    request_id: Optional[str] = None
    created_at: datetime


class PostbackUrlsRead(BaseModel):
    house_id: int
    identifier: str
    urls: dict[str, str]
