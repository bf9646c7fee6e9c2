"""Authorization package."""

from household_ledger.authorization.guard import Action, AuthorizationGuard

__all__ = ["Action", "AuthorizationGuard"]
