"""
app/database/enums.py

Enumerations

Defines enumerations used across the platform:
- UserRole: Roles assigned to users (Client, Worker, Admin)
- SubscriptionTier: Plan tiers that gate hire creation
"""

from enum import Enum

# ---------------------------------------------------
# User Role Enumeration
# ---------------------------------------------------


class UserRole(str, Enum):
    """
    Enum representing user roles for access control.

    Values:
    - CLIENT
    - WORKER
    - ADMIN
    """

    CLIENT = "CLIENT"
    WORKER = "WORKER"
    ADMIN = "ADMIN"


# ---------------------------------------------------
# Subscription Tier Enumeration
# ---------------------------------------------------


class SubscriptionTier(str, Enum):
    """
    Enum representing the subscription plan of a user.
    Billing is handled externally; this core only reads the tier.
    """

    FREE = "FREE"
    FEATURED = "FEATURED"
