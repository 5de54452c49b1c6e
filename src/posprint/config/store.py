"""Store profile persistence.

The profile lives in a flat text file with one ``Key=Value`` setting
per line. It is loaded at startup and rewritten on every update.
Callers never share a mutable profile: ``current()`` hands out frozen
snapshots and updates swap in a new one.
"""

import dataclasses
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from posprint.models import StoreProfile
from posprint.parsing.extractor import parse_bool, parse_int

logger = logging.getLogger(__name__)


# File key -> StoreProfile field, in file order
FILE_KEYS: Dict[str, str] = {
    "StoreName": "store_name",
    "Address": "address",
    "Phone": "phone",
    "Email": "email",
    "LogoPath": "logo_path",
    "PrinterName": "printer_name",
    "EnableCashDrawer": "enable_cash_drawer",
    "Currency": "currency",
    "PageWidth": "page_width",
}

_BOOL_FIELDS = {"enable_cash_drawer"}
_INT_FIELDS = {"page_width"}


def default_profile(base_dir: Path) -> StoreProfile:
    """Placeholder profile written when no profile file exists yet."""
    return StoreProfile(
        store_name="Your Store Name",
        address="123 Main St, City, State 12345",
        phone="(555) 123-4567",
        email="info@yourstore.com",
        logo_path=str(base_dir / "logo.png"),
    )


def parse_profile(text: str) -> StoreProfile:
    """Read a profile from ``Key=Value`` lines.

    Unknown keys, comments and unparsable values are skipped; the
    affected fields keep their defaults.
    """
    values: Dict[str, Union[str, int, bool]] = {}

    for number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = (part.strip() for part in line.split("=", 1))
        field_name = FILE_KEYS.get(key)
        if field_name is None:
            logger.debug(f"Ignoring unknown profile key '{key}' on line {number}")
            continue

        if field_name in _BOOL_FIELDS:
            parsed = parse_bool(value)
        elif field_name in _INT_FIELDS:
            parsed = parse_int(value)
        else:
            parsed = value

        if parsed is None:
            logger.warning(f"Ignoring invalid value for {key} on line {number}: '{value}'")
            continue
        values[field_name] = parsed

    return StoreProfile(**values)


def format_profile(profile: StoreProfile) -> str:
    """Write a profile as ``Key=Value`` lines."""
    lines = []
    for key, field_name in FILE_KEYS.items():
        value = getattr(profile, field_name)
        if isinstance(value, bool):
            value = "true" if value else "false"
        # One setting per line
        text = str(value).replace("\r", " ").replace("\n", " ")
        lines.append(f"{key}={text}")
    return "\n".join(lines) + "\n"


class ProfileStore:
    """Loads, serves and persists the store profile.

    Thread safe: the profile is an immutable value, so readers need no
    lock; updates are serialized.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._profile: Optional[StoreProfile] = None
        self._lock = threading.RLock()

    def load(self) -> StoreProfile:
        """Load the profile file, creating it with defaults if missing."""
        with self._lock:
            if not self.path.exists():
                logger.info(f"No profile at {self.path}, writing defaults")
                self._profile = default_profile(self.path.parent)
                try:
                    self._write(self._profile)
                except OSError as e:
                    logger.warning(f"Could not write default profile: {e}")
                return self._profile

            try:
                text = self.path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error(f"Error loading profile: {e}")
                self._profile = default_profile(self.path.parent)
                return self._profile

            self._profile = parse_profile(text)
            logger.info(f"Loaded store profile '{self._profile.store_name}' from {self.path}")
            return self._profile

    def current(self) -> StoreProfile:
        """Current profile snapshot."""
        profile = self._profile
        if profile is None:
            profile = self.load()
        return profile

    def update_fields(self, **changes) -> StoreProfile:
        """Apply and persist the given profile fields.

        Fields passed as None are left unchanged.

        Raises:
            TypeError: For names that are not profile fields
            OSError: If the profile file cannot be written
        """
        provided = {name: value for name, value in changes.items() if value is not None}

        with self._lock:
            updated = dataclasses.replace(self.current(), **provided)
            self._write(updated)
            self._profile = updated

        logger.info(f"Profile updated: {', '.join(sorted(provided)) or 'no fields'}")
        return updated

    def _write(self, profile: StoreProfile) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(format_profile(profile), encoding="utf-8")
        logger.debug(f"Profile saved to {self.path}")
