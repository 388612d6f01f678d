"""
Public Domain Lookup API

Unauthenticated: the edge / page-serving layer calls this with the inbound
Host before it knows which tenant is being requested.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.models.link_page import LinkPage
from app.schemas.domain import DomainLookupResult, LinkPagePublic
from app.services.hostname_resolver import HostnameResolver, NotConnected

router = APIRouter()


@router.get("/domain-lookup", response_model=DomainLookupResult)
def domain_lookup(
    hostname: str = Query(..., min_length=1),
    slug: Optional[str] = Query(None),
    db: Session = Depends(deps.get_db),
) -> Any:
    """
    Resolve a hostname to its tenant.
      - page mapping    → that page
      - account domain  → the user's page with ?slug=, if given
    """
    result = HostnameResolver(db).resolve(hostname)
    if isinstance(result, NotConnected):
        return JSONResponse(
            status_code=404,
            content={"message": result.message, "not_connected": True, "hostname": result.hostname},
        )

    page = None
    if result.link_page_id is not None:
        page = db.query(LinkPage).filter(LinkPage.id == result.link_page_id).first()
    elif slug:
        page = db.query(LinkPage).filter(
            LinkPage.user_id == result.user_id,
            LinkPage.slug == slug,
        ).first()

    return DomainLookupResult(
        hostname=result.hostname,
        user_id=result.user_id,
        link_page_id=result.link_page_id,
        domain_type=result.domain_type,
        page=LinkPagePublic.model_validate(page) if page else None,
    )
