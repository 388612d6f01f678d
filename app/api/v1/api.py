from fastapi import APIRouter

from app.api.v1.endpoints import account_domains, page_domains, public

api_router = APIRouter()
api_router.include_router(account_domains.router, prefix="/account/domains", tags=["account-domains"])
api_router.include_router(page_domains.router, prefix="/domains", tags=["page-domains"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
