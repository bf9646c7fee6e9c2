"""Household membership package."""

from household_ledger.households.service import HouseholdMembershipService

__all__ = ["HouseholdMembershipService"]
