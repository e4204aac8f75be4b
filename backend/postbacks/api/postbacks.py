# Inbound postback routes. Houses call these with GET (query string)
# or POST (query string plus an optional form body). Rejections are
# raised as PostbackError and rendered by the app's exception handler.

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from postbacks.core.db import get_db
from postbacks.core.ingestion import handle_postback
from postbacks.schemas.postbacks import PostbackAccepted


router = APIRouter(prefix="/postback", tags=["postbacks"])

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def postback_params(request: Request) -> dict[str, str]:
    params = dict(request.query_params)
    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(_FORM_TYPES):
            form = await request.form()
            for key, value in form.items():
                if isinstance(value, str):
                    params.setdefault(key, value)
    return params


def _ingest(request: Request, db: Session, house_identifier: str | None, event_type: str, params: dict):
    result = handle_postback(
        db,
        house_identifier=house_identifier,
        event_label=event_type,
        params=params,
        raw_query=request.url.query or None,
        request_id=getattr(request.state, "request_id", None),
    )
    if not result.accepted:
        raise result.error
    return PostbackAccepted(conversion_id=result.conversion_id, duplicate=result.duplicate)


@router.api_route("/{house_identifier}/{event_type}", methods=["GET", "POST"], response_model=PostbackAccepted)
def receive_house_postback(
    house_identifier: str,
    event_type: str,
    request: Request,
    params: dict = Depends(postback_params),
    db: Session = Depends(get_db),
):
    return _ingest(request, db, house_identifier, event_type, params)


@router.api_route("/{event_type}", methods=["GET", "POST"], response_model=PostbackAccepted)
def receive_postback(
    event_type: str,
    request: Request,
    params: dict = Depends(postback_params),
    db: Session = Depends(get_db),
):
    return _ingest(request, db, params.get("house"), event_type, params)
