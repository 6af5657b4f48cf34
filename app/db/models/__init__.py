# Models package (re-export feature modules for stable imports)
from .users.user import User, UserIdentity
from .auth.otp import OtpRequestRecord

__all__ = [
    "User",
    "UserIdentity",
    "OtpRequestRecord",
]
