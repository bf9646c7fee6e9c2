"""Movement ledger package."""

from household_ledger.movements.service import MovementService, movement_snapshot
from household_ledger.movements.validator import MovementValidator, ResolvedMovement

__all__ = ["MovementService", "MovementValidator", "ResolvedMovement", "movement_snapshot"]
