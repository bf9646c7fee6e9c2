"""
Identity Resolver

Turns ParticipantRefs into Identities once, at the entry of an operation,
so validation branches never re-dispatch on member vs. contact.

A reference that does not exist, or exists in another household, fails
with NotFoundError. The two cases are indistinguishable to the caller.
"""

from typing import Optional, Union
from uuid import UUID

from household_ledger.errors import NotFoundError, ValidationError
from household_ledger.models.movement import Identity, IdentityKind, ParticipantRef
from household_ledger.services.storage import HouseholdRepository


class IdentityResolver:
    """Pure lookups against the household repository. Safe to call repeatedly."""

    def __init__(self, households: HouseholdRepository):
        self._households = households

    async def resolve(
        self,
        ref: ParticipantRef,
        household_id: UUID,
        field: str = "participant",
        allow_inactive: bool = False,
    ) -> Identity:
        """
        Resolve one reference within `household_id`.

        Args:
            ref: Member (by user id) or contact reference
            household_id: Household of the operation
            field: Field name reported on failure
            allow_inactive: Accept deactivated contacts (for reading
                            existing movements)

        Raises:
            NotFoundError: Unknown reference or another household's
            ValidationError: Contact is inactive and allow_inactive is False
        """
        if ref.kind == IdentityKind.MEMBER:
            member = await self._households.get_member(household_id, ref.id)
            if member is None:
                raise NotFoundError(field=field, value=ref.id)
            return Identity(
                kind=IdentityKind.MEMBER,
                id=member.user_id,
                display_name=member.display_name,
                household_id=household_id,
            )

        contact = await self._households.get_contact(ref.id)
        if contact is None or contact.household_id != household_id:
            raise NotFoundError(field=field, value=ref.id)
        if not contact.is_active and not allow_inactive:
            raise ValidationError("contact is inactive", field=field, value=ref.id)
        return Identity(
            kind=IdentityKind.CONTACT,
            id=contact.id,
            display_name=contact.name,
            household_id=household_id,
            linked_user_id=contact.linked_user_id,
        )

    async def resolve_many(
        self,
        refs: list[ParticipantRef],
        household_id: UUID,
        field: str = "participants",
        allow_inactive: bool = False,
    ) -> list[Identity]:
        return [
            await self.resolve(ref, household_id, field=field, allow_inactive=allow_inactive)
            for ref in refs
        ]

    async def find_contact_by_email(
        self,
        household_id: UUID,
        email: str,
    ) -> Optional[Identity]:
        """Identity of the household contact registered under `email`, if any."""
        contact = await self._households.find_contact_by_email(household_id, email)
        if contact is None:
            return None
        return Identity(
            kind=IdentityKind.CONTACT,
            id=contact.id,
            display_name=contact.name,
            household_id=household_id,
            linked_user_id=contact.linked_user_id,
        )

    async def display_name_of(
        self,
        identity: Union[Identity, ParticipantRef],
        household_id: UUID,
    ) -> str:
        """Reverse lookup used for participant summaries."""
        if isinstance(identity, Identity):
            return identity.display_name
        resolved = await self.resolve(identity, household_id, allow_inactive=True)
        return resolved.display_name
