import re

from domain.models import Profile, Role
from domain.store import SERVER_TIMESTAMP, DocumentStore


PHONE_PATTERN = re.compile(r"^\d{10}$")


class InvalidProfile(ValueError):
    pass


def normalise_phone(phone: str) -> str:
    """Keep the digits only, as typed into the phone field."""
    return re.sub(r"\D", "", phone)


def validate_profile(profile: Profile) -> None:
    if not profile.name.strip():
        raise InvalidProfile("Name is required.")
    if not PHONE_PATTERN.match(profile.phone):
        raise InvalidProfile(f"Phone must be 10 digits, got {profile.phone!r}.")
    if not profile.location.strip():
        raise InvalidProfile("Location is required.")
    if profile.role is Role.owner and not (profile.shop_name and profile.store_type):
        raise InvalidProfile("Shop owners need a shop name and store type.")


class ProfileRepository:
    """Customer and owner profiles, keyed by phone number."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def sync(self, profile: Profile) -> None:
        """Create or merge. Last write wins."""
        validate_profile(profile)
        data = profile.to_dict()
        data["updatedAt"] = SERVER_TIMESTAMP
        await self.store.set(profile.role.collection, profile.phone, data, merge=True)

    async def get_by_phone(self, phone: str, role: Role) -> Profile | None:
        data = await self.store.get(role.collection, phone)
        if data is None:
            return None
        data.setdefault("role", role.value)
        return Profile.from_dict(data)

    async def list_owners(self) -> list[Profile]:
        docs = await self.store.query(Role.owner.collection)
        return [Profile.from_dict({**d.data, "role": Role.owner.value}) for d in docs]
