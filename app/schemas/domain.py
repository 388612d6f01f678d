from typing import List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class DNSRecord(BaseModel):
    type: str
    host: str
    value: str
    purpose: str

    model_config = ConfigDict(from_attributes=True)


# ── Account-level domain ──

class AccountDomainConnect(BaseModel):
    domain: str


class AccountDomainStatus(BaseModel):
    custom_domain: Optional[str] = None
    custom_domain_verified: bool = False
    custom_domain_verified_at: Optional[datetime] = None
    verification_token: Optional[str] = None
    verification_status: Optional[str] = None
    base_url: str
    dns_records: List[DNSRecord] = Field(default_factory=list)


class AccountDomainConnectResult(BaseModel):
    success: bool = True
    domain: str
    verified: bool = False
    verification_token: str
    dns_records: List[DNSRecord]
    instructions: str


# ── Per-page mappings ──

class SubdomainCreate(BaseModel):
    page_id: UUID
    subdomain: str


class PageCustomDomainCreate(BaseModel):
    page_id: UUID
    hostname: str


class PageDomain(BaseModel):
    id: UUID
    link_page_id: Optional[UUID] = None
    domain_type: str
    hostname: str
    verification_status: str
    verification_token: Optional[str] = None
    verified_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PageCustomDomainResult(BaseModel):
    domain: PageDomain
    dns_records: List[DNSRecord]
    instructions: str


class HostnameAvailability(BaseModel):
    hostname: str
    available: bool
    reason: Optional[str] = None


# ── Verification ──

class DomainVerifyResult(BaseModel):
    success: bool
    verified: bool
    outcome: str
    domain: str
    txt_verified: bool = False
    message: str
    expected_record: Optional[DNSRecord] = None
    verification_status: Optional[str] = None
    verified_at: Optional[datetime] = None


# ── Public lookup ──

class LinkPagePublic(BaseModel):
    id: UUID
    slug: str
    title: str

    model_config = ConfigDict(from_attributes=True)


class DomainLookupResult(BaseModel):
    connected: bool = True
    hostname: str
    user_id: UUID
    link_page_id: Optional[UUID] = None
    domain_type: str
    page: Optional[LinkPagePublic] = None
