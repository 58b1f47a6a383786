"""The local contact list: pubkeys the user follows for rankings.

Contacts are kept as an ordered set of lowercase hex pubkeys and, when a
path is given, persisted as a JSON array. The strict
[add()][pomostr.services.contacts.ContactsBook.add] raises
[ContactValidationError][pomostr.core.exceptions.ContactValidationError];
[add_from_string()][pomostr.services.contacts.ContactsBook.add_from_string]
returns the same message in a
[ContactAddResult][pomostr.services.contacts.ContactAddResult] for UI code.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from pomostr.core.exceptions import ConfigurationError, ContactValidationError
from pomostr.utils.keys import parse_public_key


logger = logging.getLogger("services.contacts")

INVALID_KEY = "Invalid npub or hex key"
SELF_CONTACT = "You can't add yourself"
DUPLICATE_CONTACT = "Already in your contacts"


@dataclass(frozen=True, slots=True)
class ContactAddResult:
    """Outcome of a lenient add: exactly one of ``pubkey``/``error`` is set."""

    pubkey: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ContactsBook:
    """Ordered, de-duplicated set of contact pubkeys.

    Args:
        own_pubkey: The local identity; it can never be added.
        path: JSON file to load from and save to; in-memory when None.
    """

    def __init__(self, own_pubkey: str | None = None, path: str | Path | None = None) -> None:
        self._own = own_pubkey
        self._path = Path(path) if path is not None else None
        self._contacts: dict[str, None] = {}

    @property
    def contacts(self) -> list[str]:
        return list(self._contacts)

    def __len__(self) -> int:
        return len(self._contacts)

    def contains(self, pubkey: str) -> bool:
        return pubkey in self._contacts

    def __contains__(self, pubkey: object) -> bool:
        return isinstance(pubkey, str) and self.contains(pubkey)

    def add(self, value: str) -> str:
        """Add an npub or hex key and return its hex form.

        Raises:
            ContactValidationError: If the key is invalid, is the local
                identity, or is already a contact.
        """
        pubkey = parse_public_key(value)
        if pubkey is None:
            raise ContactValidationError(INVALID_KEY)
        if pubkey == self._own:
            raise ContactValidationError(SELF_CONTACT)
        if pubkey in self._contacts:
            raise ContactValidationError(DUPLICATE_CONTACT)
        self._contacts[pubkey] = None
        self.save()
        return pubkey

    def add_from_string(self, value: str) -> ContactAddResult:
        try:
            return ContactAddResult(pubkey=self.add(value))
        except ContactValidationError as e:
            return ContactAddResult(error=str(e))

    def remove(self, pubkey: str) -> bool:
        """Remove *pubkey* (npub or hex); return whether it was a contact."""
        key = parse_public_key(pubkey) or pubkey
        if key not in self._contacts:
            return False
        del self._contacts[key]
        self.save()
        return True

    def load(self) -> None:
        """Replace the contacts with the persisted list, if the file exists.

        Invalid entries and the local identity are skipped.

        Raises:
            ConfigurationError: If the file is not a JSON array of strings.
        """
        if self._path is None or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read contacts from {self._path}: {e}") from e
        if not isinstance(data, list):
            raise ConfigurationError(f"Contacts file {self._path} must hold a JSON array")

        self._contacts.clear()
        for item in data:
            pubkey = parse_public_key(item) if isinstance(item, str) else None
            if pubkey is None or pubkey == self._own:
                logger.warning("contact_skipped entry=%r", item)
                continue
            self._contacts[pubkey] = None

    def save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(list(self._contacts), indent=2), encoding="utf-8")
