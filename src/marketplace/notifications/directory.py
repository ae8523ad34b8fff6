"""Contact directory — phone and email lookups for customers, suppliers and agents.

Identity and profile management live outside this service; the directory is
the boundary through which their contact details reach notifications and
invoices.
"""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class Contact:
    party_id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None

    def as_dict(self) -> dict:
        return {"id": self.party_id, "name": self.name, "email": self.email, "phone": self.phone}


class ContactDirectory:
    def __init__(self):
        self._lock = threading.Lock()
        self._contacts: dict[str, Contact] = {}

    def register(self, party_id: str, name: str | None = None, email: str | None = None, phone: str | None = None) -> Contact:
        contact = Contact(party_id=party_id, name=name, email=email, phone=phone)
        with self._lock:
            self._contacts[party_id] = contact
        return contact

    def lookup(self, party_id: str | None) -> Contact | None:
        if party_id is None:
            return None
        with self._lock:
            return self._contacts.get(str(party_id))

    def clear(self) -> None:
        with self._lock:
            self._contacts.clear()


_directory: ContactDirectory | None = None


def get_directory() -> ContactDirectory:
    global _directory
    if _directory is None:
        _directory = ContactDirectory()
    return _directory


def reset_directory():
    """Reset the directory singleton (useful for testing)."""
    global _directory
    _directory = None
