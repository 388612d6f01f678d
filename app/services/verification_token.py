"""DNS challenge token issuer."""
import secrets
from typing import Optional

from app.config import settings


class VerificationTokenIssuer:
    """Mints ``<platform>-verify-<32 hex>`` challenge values.

    128 bits of randomness per token; the namespace tag makes a token found
    in someone's DNS zone recognisable to support staff.
    """

    def __init__(self, prefix: Optional[str] = None, nbytes: int = 16):
        self.prefix = f"{prefix or settings.PLATFORM_NAME}-verify-"
        self.nbytes = nbytes

    def issue(self, previous: Optional[str] = None) -> str:
        token = f"{self.prefix}{secrets.token_hex(self.nbytes)}"
        while token == previous:
            token = f"{self.prefix}{secrets.token_hex(self.nbytes)}"
        return token


token_issuer = VerificationTokenIssuer()
