"""
Tests for the storage layer: atomic units of the in-memory store and the
row mapping of the Google Sheets sinks (against a fake worksheet, no
network).
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from household_ledger.models import (
    AuditEvent,
    AuditEventType,
    Movement,
    MovementParticipant,
    MovementType,
    ParticipantRef,
    SplitMode,
)
from household_ledger.orchestrator import create_ledger_components
from household_ledger.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsMovementMirror,
)
from household_ledger.services.storage.google_sheets import AUDIT_COLUMNS, MOVEMENT_COLUMNS


class FakeWorksheet:
    def __init__(self, header: list[str]):
        self.rows = [header]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def get_all_values(self):
        return [list(r) for r in self.rows]


class FakeSheetsClient:
    def __init__(self):
        self.audit_sheet = FakeWorksheet(AUDIT_COLUMNS)
        self.movements_sheet = FakeWorksheet(MOVEMENT_COLUMNS)

    def get_audit_sheet(self):
        return self.audit_sheet

    def get_movements_sheet(self):
        return self.movements_sheet


def make_movement(seed, **overrides) -> Movement:
    fields = dict(
        household_id=seed.household_id,
        type=MovementType.HOUSEHOLD,
        description="Mercado",
        amount=Decimal("50000.00"),
        movement_date=date(2025, 3, 10),
        category_id=seed.groceries.id,
        payer=seed.owner_ref,
        payer_name="Ana",
        payment_method_id=seed.owner_debit.id,
        created_by=seed.owner.user_id,
    )
    fields.update(overrides)
    return Movement(**fields)


class TestInMemoryTransactions:
    """Tests for atomic units."""

    @pytest.mark.asyncio
    async def test_failure_rolls_back_every_write(self, store, seed):
        """Test that a raising unit leaves no trace."""
        movement = make_movement(seed)
        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.movements.create(movement)
                assert await store.movements.get_by_id(movement.id) is not None
                raise RuntimeError("boom")

        assert await store.movements.get_by_id(movement.id) is None

    @pytest.mark.asyncio
    async def test_nested_unit_joins_outer(self, store, seed):
        """Test that an inner unit is undone with its outer unit."""
        first, second = make_movement(seed), make_movement(seed)
        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.movements.create(first)
                async with store.transaction():
                    await store.movements.create(second)
                raise RuntimeError("outer failure")

        assert await store.movements.get_by_id(first.id) is None
        assert await store.movements.get_by_id(second.id) is None

    @pytest.mark.asyncio
    async def test_committed_unit_persists(self, store, seed):
        """Test that a clean exit keeps the writes."""
        movement = make_movement(seed)
        async with store.transaction():
            await store.movements.create(movement)
        assert (await store.movements.get_by_id(movement.id)).amount == Decimal("50000.00")

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store, seed):
        """Test that mutating a returned record does not touch storage."""
        movement = await store.movements.create(make_movement(seed))
        movement.description = "changed"
        stored = await store.movements.get_by_id(movement.id)
        assert stored.description == "Mercado"

    @pytest.mark.asyncio
    async def test_duplicate_id_is_rejected(self, store, seed):
        """Test that creating the same record twice fails."""
        movement = make_movement(seed)
        await store.movements.create(movement)
        with pytest.raises(DuplicateError):
            await store.movements.create(movement)


class TestHouseholdRepository:
    """Tests for membership lookups."""

    @pytest.mark.asyncio
    async def test_membership_queries(self, store, seed):
        """Test household, member and owner lookups."""
        households = store.households
        assert await households.get_user_household_id(seed.member.user_id) == seed.household_id
        assert await households.is_user_member(seed.household_id, seed.owner.user_id)
        assert not await households.is_user_member(seed.household_id, seed.outsider.user_id)
        assert await households.count_owners(seed.household_id) == 1
        assert len(await households.list_members(seed.household_id)) == 2

    @pytest.mark.asyncio
    async def test_contact_by_email_is_case_insensitive(self, store, seed):
        """Test that emails match regardless of case."""
        found = await store.households.find_contact_by_email(seed.household_id, "CARLA@example.com")
        assert found.id == seed.contact.id
        assert await store.households.find_contact_by_email(seed.household_id, "nadie@x.co") is None


class TestGoogleSheetsAuditStorage:
    """Tests for the audit sheet mapping."""

    @pytest.mark.asyncio
    async def test_appended_events_read_back(self):
        """Test that events written as rows are found by entity."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        entity_id = uuid4()

        event = AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            entity_type="budget",
            entity_id=entity_id,
            description="Budget set",
            new_values={"amount": "400000.00"},
        )
        assert await storage.append_event(event) is True
        assert len(client.audit_sheet.rows[1]) == len(AUDIT_COLUMNS)

        events = await storage.get_events_by_entity("budget", entity_id)
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].new_values == {"amount": "400000.00"}
        assert events[0].success is True

    @pytest.mark.asyncio
    async def test_recent_events_newest_first(self):
        """Test ordering and skipping of unreadable rows."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        now = datetime.now(timezone.utc)
        older = AuditEvent(
            event_type=AuditEventType.MOVEMENT_CREATED,
            description="older",
            timestamp=now - timedelta(minutes=5),
        )
        newer = AuditEvent(
            event_type=AuditEventType.MOVEMENT_DELETED,
            description="newer",
            timestamp=now,
        )
        await storage.append_event(older)
        await storage.append_event(newer)
        client.audit_sheet.append_row(["not-a-uuid", "yesterday"])

        recent = await storage.get_recent_events(limit=10)
        assert [e.description for e in recent] == ["newer", "older"]


class TestGoogleSheetsMovementMirror:
    """Tests for the movements sheet mapping."""

    @pytest.mark.asyncio
    async def test_split_movement_row(self, seed):
        """Test that participants land JSON-encoded in one cell."""
        client = FakeSheetsClient()
        mirror = GoogleSheetsMovementMirror(client)
        movement = make_movement(
            seed,
            type=MovementType.SPLIT,
            split_mode=SplitMode.EQUITABLE,
            participants=[
                MovementParticipant(
                    participant=seed.owner_ref, display_name="Ana", percentage=Decimal("0.5")
                ),
                MovementParticipant(
                    participant=ParticipantRef.contact(seed.contact.id),
                    display_name="Carla",
                    percentage=Decimal("0.5"),
                ),
            ],
        )

        assert await mirror.append_movement(movement) is True
        row = client.movements_sheet.rows[1]
        assert len(row) == len(MOVEMENT_COLUMNS)
        assert row[MOVEMENT_COLUMNS.index("type")] == "SPLIT"
        assert row[MOVEMENT_COLUMNS.index("payer")] == "Ana"
        assert '"Carla"' in row[MOVEMENT_COLUMNS.index("participants_json")]


class TestSheetsWiring:
    """Tests for the factory's Sheets fallback."""

    def test_unconfigured_sheets_fall_back_to_memory(self, store, monkeypatch):
        """Test that use_sheets without credentials keeps the in-memory audit."""
        from household_ledger.config import get_settings

        for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        try:
            ledger = create_ledger_components(store=store, use_sheets=True)
        finally:
            get_settings.cache_clear()

        assert ledger.sheets_client is None
        assert ledger.audit_logger._storage is store.audit
