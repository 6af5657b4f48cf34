from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import User, UserIdentity
from .....application.ports.user_repo import IdentityDirectory, UserDto
from .....exceptions import IdentityExistsError, ProvisioningError
from .....utils import phone_digits


class SqlIdentityDirectory(IdentityDirectory):
    def __init__(self, engine: Engine):
        self.engine = engine

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            phone=user.phone,
            is_verified=bool(user.is_verified),
            created_at=user.created_at,
        )

    @staticmethod
    def _phone_variants(phone: str) -> list:
        digits = phone_digits(phone)
        variants = {phone}
        if digits:
            variants.update({digits, f"+{digits}"})
        return sorted(variants)

    def find_by_phone(self, phone: str) -> Optional[UserDto]:
        variants = self._phone_variants(phone)
        try:
            with Session(self.engine) as db:
                user = db.exec(
                    select(User)
                    .where(User.phone.in_(variants))
                    .order_by(User.created_at)
                ).first()
                if user:
                    return self._to_dto(user)
                # linked identities can carry the phone in a different format
                user = db.exec(
                    select(User)
                    .join(UserIdentity, UserIdentity.user_id == User.id)
                    .where(UserIdentity.phone.in_(variants))
                    .order_by(User.created_at)
                ).first()
                return self._to_dto(user) if user else None
        except SQLAlchemyError as e:
            raise ProvisioningError(f"Identity lookup failed: {e}") from e

    def create_confirmed(self, phone: str) -> UserDto:
        now = datetime.now(timezone.utc)
        user = User(phone=phone, is_verified=True, phone_confirmed_at=now, created_at=now, updated_at=now)
        identity = UserIdentity(user_id=user.id, provider="phone", phone=phone, created_at=now)
        try:
            with Session(self.engine) as db:
                db.add(user)
                db.add(identity)
                db.commit()
                db.refresh(user)
                return self._to_dto(user)
        except IntegrityError as e:
            raise IdentityExistsError(phone) from e
        except SQLAlchemyError as e:
            raise ProvisioningError(f"Identity creation failed: {e}") from e
