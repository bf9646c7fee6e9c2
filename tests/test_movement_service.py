"""
Tests for the movement service, driven through the ledger facade.

Covers per-type validation, authorization, atomicity, updates, deletes
and the SPLIT visibility rule.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from household_ledger.errors import (
    AmountSumInvalidError,
    InvalidAmountError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    PercentageSumInvalidError,
    SamePartyInvalidError,
    ValidationError,
)
from household_ledger.models import (
    AuditEventType,
    MovementFilter,
    MovementType,
    ParticipantRef,
    SplitMode,
)
from payloads import household_payload, income_payload, loan_payload, split_payload


def member(user) -> dict:
    return {"kind": "member", "id": str(user.user_id)}


def contact(c) -> dict:
    return {"kind": "contact", "id": str(c.id)}


class TestHouseholdMovements:

    @pytest.mark.asyncio
    async def test_create_household_expense(self, ledger, seed, audit_events):
        """A member paying with their own card creates the movement and an audit event."""
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )

        assert movement.type == MovementType.HOUSEHOLD
        assert movement.amount == Decimal("50000.00")
        assert movement.payer == seed.owner_ref
        assert movement.payer_name == "Ana"
        assert movement.created_by == seed.owner.user_id
        assert movement.category_id == seed.groceries.id

        await ledger.drain()
        created = [e for e in audit_events if e.event_type == AuditEventType.MOVEMENT_CREATED]
        assert len(created) == 1
        assert created[0].entity_id == movement.id
        assert created[0].success is True

    @pytest.mark.asyncio
    async def test_shared_payment_method_is_usable_by_any_member(self, ledger, seed):
        """A method shared with the household works for a payer who does not own it."""
        movement = await ledger.create_movement(
            seed.owner.user_id,
            seed.household_id,
            household_payload(seed, payment_method_id=str(seed.shared_cash.id)),
        )
        assert movement.payment_method_id == seed.shared_cash.id

    @pytest.mark.asyncio
    async def test_someone_elses_private_method_is_rejected(self, ledger, seed):
        """Beto's unshared debit card cannot pay for Ana."""
        with pytest.raises(NotAuthorizedError) as exc_info:
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                household_payload(seed, payment_method_id=str(seed.member_debit.id)),
            )
        assert exc_info.value.field == "payment_method_id"

    @pytest.mark.asyncio
    async def test_inactive_payment_method_is_rejected(self, ledger, seed):
        """Deactivated methods cannot be used."""
        with pytest.raises(ValidationError):
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                household_payload(seed, payment_method_id=str(seed.inactive_method.id)),
            )

    @pytest.mark.asyncio
    async def test_contact_cannot_pay_household_expense(self, ledger, seed):
        """Household expenses are paid by members only."""
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                household_payload(seed, payer=contact(seed.contact)),
            )
        assert exc_info.value.field == "payer"

    @pytest.mark.asyncio
    async def test_category_of_another_household_is_not_found(self, ledger, seed):
        """Foreign categories look exactly like missing ones."""
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                household_payload(seed, category_id=str(seed.outsider_category.id)),
            )
        assert exc_info.value.message == "resource not found or access denied"

    @pytest.mark.asyncio
    async def test_inactive_category_is_rejected(self, ledger, seed):
        """Archived categories take no new movements."""
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                household_payload(seed, category_id=str(seed.archived.id)),
            )
        assert exc_info.value.field == "category_id"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0.00", "-10.00"])
    async def test_non_positive_amount_is_rejected(self, ledger, seed, amount):
        """Zero and negative amounts fail with InvalidAmount."""
        with pytest.raises(InvalidAmountError):
            await ledger.create_movement(
                seed.owner.user_id, seed.household_id, household_payload(seed, amount=amount)
            )

    @pytest.mark.asyncio
    async def test_participants_on_household_expense_fail_schema(self, ledger, seed):
        """Illegal field combinations fail before any lookup."""
        payload = household_payload(seed, participants=[{"participant": member(seed.owner)}])
        with pytest.raises(ValidationError):
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)

    @pytest.mark.asyncio
    async def test_outsider_cannot_create(self, ledger, seed):
        """Membership is required to write."""
        with pytest.raises(NotAuthorizedError):
            await ledger.create_movement(
                seed.outsider.user_id, seed.household_id, household_payload(seed)
            )


class TestSplitMovements:

    @pytest.mark.asyncio
    async def test_equitable_split_stores_participants(self, ledger, seed):
        """Three equal participants get 1/3 each and settle to the total."""
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, split_payload(seed)
        )

        assert movement.split_mode == SplitMode.EQUITABLE
        assert [p.percentage for p in movement.participants] == [Decimal("0.33333333")] * 3
        assert [p.display_name for p in movement.participants] == ["Ana", "Beto", "Carla"]

        settled = [share for _, share in ledger.movements.settlement_amounts(movement)]
        assert settled == [Decimal("33333.33"), Decimal("33333.33"), Decimal("33333.34")]

    @pytest.mark.asyncio
    async def test_percentage_sum_invalid_persists_nothing(self, ledger, seed):
        """A rejected split leaves no movement behind."""
        participants = [
            {"participant": member(seed.owner), "percentage": "0.33"},
            {"participant": member(seed.member), "percentage": "0.33"},
            {"participant": contact(seed.contact), "percentage": "0.33"},
        ]
        with pytest.raises(PercentageSumInvalidError):
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                split_payload(seed, split_mode="percentage", participants=participants),
            )

        result = await ledger.list_movements(seed.owner.user_id, seed.household_id)
        assert result.count == 0

    @pytest.mark.asyncio
    async def test_amount_split_keeps_exact_amounts(self, ledger, seed):
        """Exact amounts are stored and used verbatim at settlement."""
        participants = [
            {"participant": member(seed.member), "amount": "60000.00"},
            {"participant": contact(seed.contact), "amount": "40000.00"},
        ]
        movement = await ledger.create_movement(
            seed.owner.user_id,
            seed.household_id,
            split_payload(seed, split_mode="amount", participants=participants),
        )
        assert [p.amount for p in movement.participants] == [
            Decimal("60000.00"), Decimal("40000.00")
        ]
        assert [p.percentage for p in movement.participants] == [Decimal("0.6"), Decimal("0.4")]

    @pytest.mark.asyncio
    async def test_amount_split_must_sum_exactly(self, ledger, seed):
        """One cent short is rejected."""
        participants = [
            {"participant": member(seed.member), "amount": "60000.00"},
            {"participant": contact(seed.contact), "amount": "39999.99"},
        ]
        with pytest.raises(AmountSumInvalidError):
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                split_payload(seed, split_mode="amount", participants=participants),
            )

    @pytest.mark.asyncio
    async def test_contact_payer_takes_no_payment_method(self, ledger, seed):
        """Contacts pay outside the household's instruments."""
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                split_payload(seed, payer=contact(seed.contact)),
            )
        assert exc_info.value.field == "payment_method_id"

        payload = split_payload(seed, payer=contact(seed.contact))
        del payload["payment_method_id"]
        movement = await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)
        assert movement.payer == seed.contact_ref
        assert movement.payment_method_id is None

    @pytest.mark.asyncio
    async def test_member_payer_needs_payment_method(self, ledger, seed):
        """A member paying a split must say how."""
        payload = split_payload(seed)
        del payload["payment_method_id"]
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)
        assert exc_info.value.field == "payment_method_id"

    @pytest.mark.asyncio
    async def test_inactive_contact_cannot_participate(self, ledger, seed):
        """Deactivated contacts are rejected on writes."""
        participants = [
            {"participant": member(seed.owner)},
            {"participant": contact(seed.inactive_contact)},
        ]
        with pytest.raises(ValidationError):
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                split_payload(seed, participants=participants),
            )

    @pytest.mark.asyncio
    async def test_foreign_contact_cannot_participate(self, ledger, seed):
        """Another household's contact does not resolve."""
        participants = [
            {"participant": member(seed.owner)},
            {"participant": contact(seed.outsider_contact)},
        ]
        with pytest.raises(NotFoundError):
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                split_payload(seed, participants=participants),
            )


class TestLoanMovements:

    @pytest.mark.asyncio
    async def test_lend_to_contact(self, ledger, seed):
        """A loan to a contact needs no receiver account."""
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, loan_payload(seed)
        )
        assert movement.counterparty == seed.contact_ref
        assert movement.counterparty_name == "Carla"
        assert movement.category_id is None

    @pytest.mark.asyncio
    async def test_lend_to_member_requires_receiver_account(self, ledger, seed, store):
        """Money lent to a member lands in one of their savings or cash accounts."""
        payload = loan_payload(seed, counterparty=member(seed.member))
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)
        assert exc_info.value.field == "receiver_account_id"

        payload["receiver_account_id"] = str(seed.member_cash.id)
        movement = await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)
        assert movement.receiver_account_id == seed.member_cash.id
        assert await store.accounts.get_balance(seed.member_cash.id) == Decimal("200000.00")

    @pytest.mark.asyncio
    async def test_receiver_account_must_belong_to_counterparty(self, ledger, seed):
        """The payer's own account is not the counterparty's."""
        payload = loan_payload(
            seed,
            counterparty=member(seed.member),
            receiver_account_id=str(seed.owner_savings.id),
        )
        with pytest.raises(NotAuthorizedError):
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)

    @pytest.mark.asyncio
    async def test_contact_counterparty_takes_no_receiver_account(self, ledger, seed):
        """Contacts have no accounts in the household."""
        payload = loan_payload(seed, receiver_account_id=str(seed.member_savings.id))
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)
        assert exc_info.value.field == "receiver_account_id"

    @pytest.mark.asyncio
    async def test_payer_and_counterparty_must_differ(self, ledger, seed):
        """Lending to yourself is rejected."""
        payload = loan_payload(seed, counterparty=member(seed.owner))
        with pytest.raises(SamePartyInvalidError):
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)

    @pytest.mark.asyncio
    async def test_linked_contact_is_the_same_party(self, ledger, seed):
        """Beto's linked contact is Beto."""
        payload = loan_payload(
            seed,
            payer=member(seed.member),
            counterparty=contact(seed.linked_contact),
        )
        with pytest.raises(SamePartyInvalidError):
            await ledger.create_movement(seed.member.user_id, seed.household_id, payload)

    @pytest.mark.asyncio
    async def test_linked_contact_lending_to_its_member(self, ledger, seed):
        """The same pair in the other order is still one party."""
        payload = loan_payload(
            seed,
            payer=contact(seed.linked_contact),
            counterparty=member(seed.member),
            receiver_account_id=str(seed.member_savings.id),
        )
        with pytest.raises(SamePartyInvalidError):
            await ledger.create_movement(seed.member.user_id, seed.household_id, payload)

    @pytest.mark.asyncio
    async def test_contact_lending_to_itself(self, ledger, seed):
        """A contact cannot be both sides of a loan."""
        payload = loan_payload(
            seed,
            payer=contact(seed.contact),
            counterparty=contact(seed.contact),
        )
        with pytest.raises(SamePartyInvalidError):
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)

    @pytest.mark.asyncio
    async def test_category_on_loan_fails_schema(self, ledger, seed):
        """Loans are never categorized."""
        payload = loan_payload(seed, category_id=str(seed.groceries.id))
        with pytest.raises(ValidationError):
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)


class TestIncomeMovements:

    @pytest.mark.asyncio
    async def test_income_raises_account_balance(self, ledger, seed, store):
        """Income is credited to the member's account."""
        movement = await ledger.create_movement(
            seed.member.user_id, seed.household_id, income_payload(seed)
        )
        assert movement.member_id == seed.member.user_id
        assert await store.accounts.get_balance(seed.member_savings.id) == Decimal("3000000.00")

    @pytest.mark.asyncio
    async def test_checking_account_cannot_receive_income(self, ledger, seed):
        """Only savings and cash accounts receive income."""
        payload = income_payload(
            seed,
            member_id=str(seed.owner.user_id),
            account_id=str(seed.owner_checking.id),
        )
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)
        assert exc_info.value.field == "account_id"

    @pytest.mark.asyncio
    async def test_account_must_belong_to_receiving_member(self, ledger, seed):
        """Beto's salary cannot land in Ana's account."""
        payload = income_payload(seed, account_id=str(seed.owner_savings.id))
        with pytest.raises(NotAuthorizedError):
            await ledger.create_movement(seed.owner.user_id, seed.household_id, payload)


class TestUpdateMovement:

    @pytest.mark.asyncio
    async def test_update_replaces_values_and_keeps_identity(self, ledger, seed):
        """Creator, creation time and id survive an update."""
        original = await ledger.create_movement(
            seed.member.user_id,
            seed.household_id,
            household_payload(
                seed,
                payer=member(seed.member),
                payment_method_id=str(seed.member_debit.id),
            ),
        )

        updated = await ledger.update_movement(
            seed.owner.user_id,
            original.id,
            household_payload(seed, amount="75000.00", description="Mercado grande"),
        )

        assert updated.id == original.id
        assert updated.created_by == seed.member.user_id
        assert updated.created_at == original.created_at
        assert updated.amount == Decimal("75000.00")
        assert updated.payer == seed.owner_ref

    @pytest.mark.asyncio
    async def test_type_cannot_change(self, ledger, seed):
        """A HOUSEHOLD movement stays HOUSEHOLD."""
        original = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )
        with pytest.raises(ValidationError) as exc_info:
            await ledger.update_movement(seed.owner.user_id, original.id, split_payload(seed))
        assert exc_info.value.field == "type"

    @pytest.mark.asyncio
    async def test_member_cannot_update_someone_elses_movement(self, ledger, seed):
        """Only the creator or an owner may edit."""
        original = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )
        with pytest.raises(NotAuthorizedError):
            await ledger.update_movement(
                seed.member.user_id, original.id, household_payload(seed, amount="1.00")
            )

    @pytest.mark.asyncio
    async def test_failed_update_leaves_movement_untouched(self, ledger, seed):
        """A rejected split edit keeps the previous participants."""
        original = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, split_payload(seed)
        )
        bad = split_payload(
            seed,
            split_mode="percentage",
            participants=[
                {"participant": member(seed.owner), "percentage": "0.7"},
                {"participant": member(seed.member), "percentage": "0.2"},
            ],
        )
        with pytest.raises(PercentageSumInvalidError):
            await ledger.update_movement(seed.owner.user_id, original.id, bad)

        current = await ledger.get_movement(seed.owner.user_id, original.id)
        assert current.split_mode == SplitMode.EQUITABLE
        assert len(current.participants) == 3

    @pytest.mark.asyncio
    async def test_update_missing_movement(self, ledger, seed):
        """Unknown ids are NotFound."""
        with pytest.raises(NotFoundError):
            await ledger.update_movement(seed.owner.user_id, uuid4(), household_payload(seed))


class TestDeleteMovement:

    @pytest.mark.asyncio
    async def test_creator_deletes(self, ledger, seed, audit_events):
        """A deleted movement is gone and the deletion is audited."""
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )
        await ledger.delete_movement(seed.owner.user_id, movement.id)

        with pytest.raises(NotFoundError):
            await ledger.get_movement(seed.owner.user_id, movement.id)

        await ledger.drain()
        deleted = [e for e in audit_events if e.event_type == AuditEventType.MOVEMENT_DELETED]
        assert deleted[0].old_values["amount"] == "50000.00"

    @pytest.mark.asyncio
    async def test_member_cannot_delete_owners_movement(self, ledger, seed):
        """Deletion is restricted like updates."""
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )
        with pytest.raises(NotAuthorizedError):
            await ledger.delete_movement(seed.member.user_id, movement.id)

    @pytest.mark.asyncio
    async def test_owner_deletes_members_movement(self, ledger, seed):
        """Owners may delete anything in their household."""
        movement = await ledger.create_movement(
            seed.member.user_id, seed.household_id, income_payload(seed)
        )
        await ledger.delete_movement(seed.owner.user_id, movement.id)
        result = await ledger.list_movements(seed.owner.user_id, seed.household_id)
        assert result.count == 0

    @pytest.mark.asyncio
    async def test_failed_delete_is_audited(self, ledger, seed, audit_events):
        """Failures produce an unsuccessful audit event."""
        with pytest.raises(NotFoundError):
            await ledger.delete_movement(seed.owner.user_id, uuid4())
        await ledger.drain()
        assert audit_events[-1].success is False
        assert audit_events[-1].event_type == AuditEventType.MOVEMENT_DELETED


class TestListAndVisibility:

    @pytest.mark.asyncio
    async def test_split_hidden_from_uninvolved_member(self, ledger, seed):
        """Beto does not see a split between Ana and Carla."""
        participants = [
            {"participant": member(seed.owner)},
            {"participant": contact(seed.contact)},
        ]
        split = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, split_payload(seed, participants=participants)
        )
        await ledger.create_movement(seed.owner.user_id, seed.household_id, household_payload(seed))

        for_beto = await ledger.list_movements(seed.member.user_id, seed.household_id)
        assert [m.type for m in for_beto.items] == [MovementType.HOUSEHOLD]
        with pytest.raises(NotFoundError):
            await ledger.get_movement(seed.member.user_id, split.id)

        for_ana = await ledger.list_movements(seed.owner.user_id, seed.household_id)
        assert for_ana.count == 2

    @pytest.mark.asyncio
    async def test_linked_contact_makes_split_visible(self, ledger, seed):
        """A split naming Beto's linked contact is Beto's business."""
        participants = [
            {"participant": member(seed.owner)},
            {"participant": contact(seed.linked_contact)},
        ]
        await ledger.create_movement(
            seed.owner.user_id, seed.household_id, split_payload(seed, participants=participants)
        )
        for_beto = await ledger.list_movements(seed.member.user_id, seed.household_id)
        assert for_beto.count == 1

    @pytest.mark.asyncio
    async def test_limit_counts_visible_movements_only(self, ledger, seed):
        """Hidden splits do not use up Beto's page."""
        await ledger.create_movement(seed.owner.user_id, seed.household_id, household_payload(seed))
        participants = [
            {"participant": member(seed.owner)},
            {"participant": contact(seed.contact)},
        ]
        for day in ("2025-03-12", "2025-03-13", "2025-03-14"):
            await ledger.create_movement(
                seed.owner.user_id,
                seed.household_id,
                split_payload(seed, participants=participants, movement_date=day),
            )

        for_beto = await ledger.list_movements(
            seed.member.user_id, seed.household_id, MovementFilter(limit=2)
        )
        assert [m.type for m in for_beto.items] == [MovementType.HOUSEHOLD]
        assert for_beto.count == 1
        assert for_beto.total == Decimal("50000.00")

        for_ana = await ledger.list_movements(
            seed.owner.user_id, seed.household_id, MovementFilter(limit=2)
        )
        assert len(for_ana.items) == 2
        assert for_ana.count == 4
        assert for_ana.total == Decimal("350000.00")

    @pytest.mark.asyncio
    async def test_totals_by_type_and_category(self, ledger, seed):
        """Totals cover the visible items only."""
        await ledger.create_movement(seed.owner.user_id, seed.household_id, household_payload(seed))
        await ledger.create_movement(seed.owner.user_id, seed.household_id, loan_payload(seed))
        await ledger.create_movement(
            seed.owner.user_id,
            seed.household_id,
            household_payload(seed, amount="1500000.00", category_id=str(seed.rent.id)),
        )

        result = await ledger.list_movements(seed.owner.user_id, seed.household_id)
        assert result.total == Decimal("1750000.00")
        assert result.totals_by_type[MovementType.HOUSEHOLD] == Decimal("1550000.00")
        assert result.totals_by_type[MovementType.LOAN] == Decimal("200000.00")
        assert result.totals_by_category[seed.rent.id] == Decimal("1500000.00")

    @pytest.mark.asyncio
    async def test_month_filter(self, ledger, seed):
        """Only movements dated in the month are listed."""
        await ledger.create_movement(seed.owner.user_id, seed.household_id, household_payload(seed))
        await ledger.create_movement(
            seed.owner.user_id,
            seed.household_id,
            household_payload(seed, movement_date="2025-02-27"),
        )
        result = await ledger.list_movements(
            seed.owner.user_id, seed.household_id, MovementFilter(month="2025-02")
        )
        assert result.count == 1
        assert result.items[0].movement_date == date(2025, 2, 27)

    @pytest.mark.asyncio
    async def test_outsider_cannot_list(self, ledger, seed):
        """Reading another household is NotAuthorized."""
        with pytest.raises(NotAuthorizedError) as exc_info:
            await ledger.list_movements(seed.outsider.user_id, seed.household_id)
        assert exc_info.value.message == "resource not found or access denied"


class TestAtomicity:

    @pytest.mark.asyncio
    async def test_failure_after_insert_rolls_back(self, ledger, seed, monkeypatch):
        """A failing budget step undoes the movement insert."""

        async def broken_floor(*args, **kwargs):
            raise InvalidStateError("budget store unavailable")

        monkeypatch.setattr(ledger.budgets, "recompute_floor", broken_floor)

        with pytest.raises(InvalidStateError):
            await ledger.create_movement(
                seed.owner.user_id, seed.household_id, household_payload(seed)
            )
        result = await ledger.list_movements(seed.owner.user_id, seed.household_id)
        assert result.count == 0

    @pytest.mark.asyncio
    async def test_mirror_failure_does_not_fail_create(self, ledger, seed):
        """The spreadsheet mirror is best-effort."""

        class BrokenMirror:
            async def append_movement(self, movement):
                raise RuntimeError("sheets quota exceeded")

        ledger.movements._mirror = BrokenMirror()
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )
        assert (await ledger.get_movement(seed.owner.user_id, movement.id)).id == movement.id

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, ledger, seed, store):
        """Mutating a returned movement does not touch storage."""
        movement = await ledger.create_movement(
            seed.owner.user_id, seed.household_id, household_payload(seed)
        )
        movement.description = "changed"
        stored = await store.movements.get_by_id(movement.id)
        assert stored.description == "Mercado semanal"
        assert stored.payer == ParticipantRef.member(seed.owner.user_id)
