"""Public URLs for a user's pages: the verified account domain, else the platform domain."""
from typing import Optional

from app.config import settings
from app.models.custom_domain import CustomDomain


def get_domain_for_display(account_domain: Optional[CustomDomain]) -> str:
    if account_domain is not None and account_domain.is_verified:
        return account_domain.hostname
    return settings.PLATFORM_DOMAIN


def get_base_url(account_domain: Optional[CustomDomain]) -> str:
    return f"https://{get_domain_for_display(account_domain)}"


def get_full_url(account_domain: Optional[CustomDomain], slug: str) -> str:
    return f"{get_base_url(account_domain)}/{slug or 'your-slug'}"
