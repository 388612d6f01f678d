"""Shared test helpers: in-memory DNS backend and bearer tokens."""
import uuid

from jose import jwt

from app.config import settings
from app.services.dns_checker import RecordNotFound, TransientLookupError


class FakeDNS:
    """In-memory DNS backend.

    ``txt_records`` / ``a_records`` / ``cname_records`` map a name to its
    answers; a missing name is NXDOMAIN. Names in ``transient`` time out.
    """

    def __init__(self):
        self.txt_records = {}
        self.a_records = {}
        self.cname_records = {}
        self.transient = set()
        self.queries = []

    def _answer(self, table: dict, rdtype: str, name: str):
        self.queries.append((rdtype, name))
        if name in self.transient:
            raise TransientLookupError(f"{rdtype} {name}: timed out")
        if name not in table:
            raise RecordNotFound(f"{rdtype} {name}: NXDOMAIN")
        return list(table[name])

    def txt(self, name):
        return self._answer(self.txt_records, "TXT", name)

    def a(self, name):
        return self._answer(self.a_records, "A", name)

    def cname(self, name):
        return self._answer(self.cname_records, "CNAME", name)


def auth_headers(user_id: uuid.UUID, email: str = None) -> dict:
    payload = {"sub": str(user_id)}
    if email:
        payload["email"] = email
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}
