"""
User roles enumeration.

Defines the role types carried in access tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform operator; grants commission credits to any vendor
        VENDOR: Fleet vendor; sees and moves money in its own wallet
    """
    ADMIN = "ADMIN"
    VENDOR = "VENDOR"
