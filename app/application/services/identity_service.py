import logging
from dataclasses import dataclass

from ..ports.user_repo import IdentityDirectory
from ...exceptions import IdentityExistsError, ProvisioningError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionedIdentity:
    user_id: str
    created: bool


@dataclass
class IdentityService:
    directory: IdentityDirectory

    def ensure(self, phone: str) -> ProvisionedIdentity:
        """Return the user owning ``phone``, creating a confirmed one if absent.

        A concurrent caller may create the same phone between our lookup and
        insert; the directory then reports the conflict and we return the
        winner's record.
        """
        existing = self.directory.find_by_phone(phone)
        if existing:
            return ProvisionedIdentity(user_id=existing.id, created=False)

        try:
            created = self.directory.create_confirmed(phone)
        except IdentityExistsError:
            logger.info("Identity was created concurrently; re-reading")
            existing = self.directory.find_by_phone(phone)
            if not existing:
                raise ProvisioningError("Identity reported as existing but could not be found")
            return ProvisionedIdentity(user_id=existing.id, created=False)

        logger.info(f"Created identity {created.id}")
        return ProvisionedIdentity(user_id=created.id, created=True)
