"""Identity resolution package."""

from household_ledger.identity.resolver import IdentityResolver

__all__ = ["IdentityResolver"]
