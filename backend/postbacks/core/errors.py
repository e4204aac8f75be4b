from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class PostbackError(Exception):
    """Base for every reason a postback is not accepted.

    ``code`` is the machine-readable reason returned to the sending house.
    Client-caused failures are terminal; only ``retryable`` ones should be
    answered with a 5xx so the house retries.
    """

    code: str
    message: str
    status_code: int
    retryable: bool = False

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"accepted": False, "reason": self.code, "message": self.message}


class UnknownHouse(PostbackError):
    def __init__(self, message: str = "Unknown or inactive betting house"):
        super().__init__(code="unknown_house", message=message, status_code=404)


class InvalidToken(PostbackError):
    def __init__(self, message: str = "Invalid security token"):
        super().__init__(code="invalid_token", message=message, status_code=403)


class MalformedEvent(PostbackError):
    def __init__(self, message: str):
        super().__init__(code="malformed_event", message=message, status_code=422)


class UnresolvedAffiliate(PostbackError):
    def __init__(self, message: str = "No active affiliate link matches subid"):
        super().__init__(code="unresolved_affiliate", message=message, status_code=422)


class TransientStoreFailure(PostbackError):
    def __init__(self, message: str = "Temporary storage failure, retry later"):
        super().__init__(
            code="transient_store_failure",
            message=message,
            status_code=503,
            retryable=True,
        )
