from typing import Protocol, Optional
from datetime import datetime

class UserDto:
    def __init__(self, id: str, phone: str, is_verified: bool, created_at: datetime):
        self.id = id
        self.phone = phone
        self.is_verified = is_verified
        self.created_at = created_at

class IdentityDirectory(Protocol):
    def find_by_phone(self, phone: str) -> Optional[UserDto]:
        ...

    def create_confirmed(self, phone: str) -> UserDto:
        """Create a user with the phone already confirmed.

        Raises IdentityExistsError when the phone is taken.
        """
        ...
