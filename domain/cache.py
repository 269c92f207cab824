"""Local copies of the last profiles and each shop's order board.

Only used to paint something before the first live snapshot arrives. The live
snapshot always replaces whatever came from here.
"""

import json
import logging
from pathlib import Path
from typing import Any

from domain.models import Order, Profile, Role


logger = logging.getLogger(__name__)


PROFILE_KEYS = {
    Role.customer: "portionPerfect_customer",
    Role.owner: "portionPerfect_owner",
}


class LocalCache:
    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _load(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except (OSError, ValueError):
            logger.error("Failed to parse cached %s", key)
            return None

    def _save(self, key: str, data: Any) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(json.dumps(data))
        except OSError:
            logger.exception("Failed to write cached %s", key)

    def load_profile(self, role: Role) -> Profile | None:
        key = PROFILE_KEYS[role]
        data = self._load(key)
        if not data:
            return None
        try:
            return Profile.from_dict(data)
        except (KeyError, ValueError, TypeError, AttributeError):
            logger.error("Ignoring malformed cached %s", key)
            return None

    def save_profile(self, profile: Profile) -> None:
        self._save(PROFILE_KEYS[profile.role], profile.to_dict())

    def clear_profile(self, role: Role) -> None:
        self._path(PROFILE_KEYS[role]).unlink(missing_ok=True)

    def load_orders(self, shop_phone: str) -> list[Order]:
        key = f"orders_{shop_phone}"
        data = self._load(key) or []
        try:
            return [Order.from_document(d["id"], d) for d in data]
        except (KeyError, ValueError, TypeError, AttributeError):
            logger.error("Ignoring malformed cached %s", key)
            return []

    def save_orders(self, shop_phone: str, orders: list[Order]) -> None:
        self._save(f"orders_{shop_phone}", [o.to_dict() for o in orders])
