from app.db.base_class import Base
from app.models.user import User
from app.models.link_page import LinkPage
from app.models.custom_domain import CustomDomain, DomainType, VerificationStatus
