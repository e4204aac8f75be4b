from __future__ import annotations

from sqlalchemy.orm import Session

from postbacks.core.errors import UnresolvedAffiliate
from postbacks.core.logging import get_structured_logger
from postbacks.crud.affiliates import list_active_links_for_identifier
from postbacks.models.affiliates import AffiliateLink


logger = get_structured_logger("attribution_logger")


def resolve_link(db: Session, *, house_id: int, subid: str) -> AffiliateLink:
    """Map a house's subid to the active affiliate link that issued it.

    Exact match among active links only. More than one match means the
    link table is misconfigured; the newest link wins so the request still
    completes, and the anomaly is logged at error level.
    """
    identifier = (subid or "").strip()
    if not identifier:
        raise UnresolvedAffiliate("subid is empty")

    links = list_active_links_for_identifier(db, house_id=house_id, identifier=identifier)
    if not links:
        raise UnresolvedAffiliate(f"No active affiliate link for subid '{identifier}'")

    chosen = links[0]
    if len(links) > 1:
        logger.error(
            "attribution.duplicate_active_link",
            extra={
                "house_id": house_id,
                "subid": identifier,
                "link_ids": [link.id for link in links],
                "chosen_link_id": chosen.id,
                "severity": "high",
            },
        )
    return chosen
