from __future__ import annotations

from sqlalchemy.orm import Session

from postbacks.models.affiliates import Affiliate, AffiliateLink


def create_affiliate(db: Session, *, username: str, name: str | None = None) -> Affiliate:
    affiliate = Affiliate(username=username.strip().lower(), name=name, is_active=True)
    db.add(affiliate)
    db.commit()
    db.refresh(affiliate)
    return affiliate


def get_affiliate(db: Session, *, affiliate_id: int) -> Affiliate | None:
    return db.query(Affiliate).filter(Affiliate.id == affiliate_id).first()


def get_affiliate_by_username(db: Session, *, username: str) -> Affiliate | None:
    return db.query(Affiliate).filter(Affiliate.username == username.strip().lower()).first()


def create_link(
    db: Session,
    *,
    affiliate_id: int,
    house_id: int,
    generated_identifier: str,
    generated_url: str | None = None,
) -> AffiliateLink:
    link = AffiliateLink(
        affiliate_id=affiliate_id,
        house_id=house_id,
        generated_identifier=generated_identifier,
        generated_url=generated_url,
        is_active=True,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def get_active_link(db: Session, *, affiliate_id: int, house_id: int) -> AffiliateLink | None:
    return (
        db.query(AffiliateLink)
        .filter(
            AffiliateLink.affiliate_id == affiliate_id,
            AffiliateLink.house_id == house_id,
            AffiliateLink.is_active.is_(True),
        )
        .first()
    )


def list_active_links_for_identifier(db: Session, *, house_id: int, identifier: str) -> list[AffiliateLink]:
    # Newest first: the resolver's tie-break depends on this ordering.
    return (
        db.query(AffiliateLink)
        .filter(
            AffiliateLink.house_id == house_id,
            AffiliateLink.generated_identifier == identifier,
            AffiliateLink.is_active.is_(True),
        )
        .order_by(AffiliateLink.created_at.desc(), AffiliateLink.id.desc())
        .all()
    )


def deactivate_link(db: Session, *, link: AffiliateLink) -> AffiliateLink:
    link.is_active = False
    db.commit()
    db.refresh(link)
    return link
