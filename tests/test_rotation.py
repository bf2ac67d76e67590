"""Tests for src.core.rotation — pointer moves, deletion re-indexing, locking."""

import asyncio

import pytest

from src.core.errors import EmptyRegistryError, ForbiddenError, NotFoundError
from src.core.rotation import clamp_index, index_after_deletion
from src.data.models import LedgerCategory


def _raw_index(engine):
    with engine.household.read() as tx:
        return tx.get_rotation_index()


async def _seed(engine, actor, *names):
    return [await engine.residents.add(actor, name, flat_number=str(i + 1)) for i, name in enumerate(names)]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestClampIndex:
    def test_valid_index_kept(self):
        assert clamp_index(2, 3) == 2

    def test_past_end_resets(self):
        assert clamp_index(3, 3) == 0

    def test_negative_resets(self):
        assert clamp_index(-1, 3) == 0

    def test_empty_is_zero(self):
        assert clamp_index(5, 0) == 0


class TestIndexAfterDeletion:
    def test_delete_before_pointer_shifts_down(self):
        assert index_after_deletion(2, 0, remaining=3) == 1

    def test_delete_at_pointer_hands_turn_to_successor(self):
        assert index_after_deletion(1, 1, remaining=2) == 1

    def test_delete_last_at_pointer_wraps(self):
        assert index_after_deletion(2, 2, remaining=2) == 0

    def test_delete_after_pointer_unchanged(self):
        assert index_after_deletion(0, 2, remaining=2) == 0

    def test_delete_only_resident(self):
        assert index_after_deletion(0, 0, remaining=0) == 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestRotationReads:
    def test_current_on_empty_registry_raises(self, engine):
        with pytest.raises(EmptyRegistryError):
            engine.rotation.current()

    def test_next_on_empty_registry_raises(self, engine):
        with pytest.raises(EmptyRegistryError):
            engine.rotation.next_in_rotation()

    @pytest.mark.asyncio
    async def test_first_resident_is_current(self, engine, editor):
        await _seed(engine, editor, "Jane Doe", "Bob Smith")
        assert engine.rotation.current().name == "Jane Doe"
        assert engine.rotation.next_in_rotation().name == "Bob Smith"

    @pytest.mark.asyncio
    async def test_next_wraps_around(self, engine, editor):
        residents = await _seed(engine, editor, "A", "B")
        await engine.rotation.set_current(editor, residents[1].id)
        assert engine.rotation.next_in_rotation().name == "A"

    @pytest.mark.asyncio
    async def test_single_resident_is_own_successor(self, engine, editor):
        await _seed(engine, editor, "Solo")
        assert engine.rotation.next_in_rotation().name == "Solo"


# ---------------------------------------------------------------------------
# skip / set_current
# ---------------------------------------------------------------------------


class TestSkip:
    @pytest.mark.asyncio
    async def test_skip_advances(self, engine, editor):
        await _seed(engine, editor, "A", "B", "C")
        new = await engine.rotation.skip(editor)
        assert new.name == "B"
        assert engine.rotation.current().name == "B"

    @pytest.mark.asyncio
    async def test_skip_n_times_is_cyclic(self, engine, editor):
        await _seed(engine, editor, "A", "B", "C", "D")
        start = engine.rotation.current_index()
        for _ in range(4):
            await engine.rotation.skip(editor)
        assert engine.rotation.current_index() == start

    @pytest.mark.asyncio
    async def test_skip_logs_entry(self, engine, editor):
        await _seed(engine, editor, "A", "B")
        await engine.rotation.skip(editor)
        entry = engine.ledger.latest()
        assert entry.category == LedgerCategory.ROTATION
        assert "skipped" in entry.message.lower()
        assert entry.actor == editor.email

    @pytest.mark.asyncio
    async def test_skip_on_empty_registry_is_silent_noop(self, engine, editor):
        assert await engine.rotation.skip(editor) is None
        assert engine.ledger.list() == []

    @pytest.mark.asyncio
    async def test_viewer_cannot_skip(self, engine, editor, viewer):
        await _seed(engine, editor, "A", "B")
        before = len(engine.ledger.list())
        with pytest.raises(ForbiddenError):
            await engine.rotation.skip(viewer)
        assert engine.rotation.current().name == "A"
        assert len(engine.ledger.list()) == before

    @pytest.mark.asyncio
    async def test_concurrent_skips_both_apply(self, engine, editor):
        await _seed(engine, editor, "A", "B", "C", "D", "E")
        await asyncio.gather(engine.rotation.skip(editor), engine.rotation.skip(editor))
        assert engine.rotation.current_index() == 2

    @pytest.mark.asyncio
    async def test_many_concurrent_skips(self, engine, editor):
        await _seed(engine, editor, "A", "B", "C")
        await asyncio.gather(*(engine.rotation.skip(editor) for _ in range(7)))
        assert engine.rotation.current_index() == 7 % 3

    @pytest.mark.asyncio
    async def test_skip_waits_for_open_mutation(self, engine, editor):
        await _seed(engine, editor, "A", "B", "C", "D", "E")
        holding = asyncio.Event()

        async def advance_slowly():
            async with engine.household.mutation() as tx:
                index = tx.get_rotation_index()
                holding.set()
                for _ in range(5):
                    await asyncio.sleep(0)
                tx.set_rotation_index(index + 1)

        slow = asyncio.create_task(advance_slowly())
        await holding.wait()
        await engine.rotation.skip(editor)
        await slow

        assert _raw_index(engine) == 2
        assert engine.rotation.current().name == "C"


class TestSetCurrent:
    @pytest.mark.asyncio
    async def test_set_current_then_current(self, engine, editor):
        residents = await _seed(engine, editor, "A", "B", "C")
        for resident in residents:
            await engine.rotation.set_current(editor, resident.id)
            assert engine.rotation.current().id == resident.id

    @pytest.mark.asyncio
    async def test_set_current_unknown_raises(self, engine, editor):
        await _seed(engine, editor, "A")
        with pytest.raises(NotFoundError):
            await engine.rotation.set_current(editor, "missing")

    @pytest.mark.asyncio
    async def test_set_current_logs_new_resident(self, engine, editor):
        residents = await _seed(engine, editor, "A", "Bob Smith")
        await engine.rotation.set_current(editor, residents[1].id)
        assert "Bob Smith" in engine.ledger.latest().message

    @pytest.mark.asyncio
    async def test_viewer_cannot_set_current(self, engine, editor, viewer):
        residents = await _seed(engine, editor, "A", "B")
        with pytest.raises(ForbiddenError):
            await engine.rotation.set_current(viewer, residents[1].id)
        assert engine.rotation.current().name == "A"


# ---------------------------------------------------------------------------
# Deletion re-indexing (shift-down)
# ---------------------------------------------------------------------------


class TestDeletionReindexing:
    @pytest.mark.asyncio
    async def test_delete_current_hands_turn_to_successor(self, engine, editor):
        a, b, c = await _seed(engine, editor, "A", "B", "C")
        await engine.rotation.set_current(editor, b.id)
        await engine.residents.delete(editor, b.id)
        assert engine.rotation.current().name == "C"

    @pytest.mark.asyncio
    async def test_delete_current_last_wraps_to_first(self, engine, editor):
        a, b, c = await _seed(engine, editor, "A", "B", "C")
        await engine.rotation.set_current(editor, c.id)
        await engine.residents.delete(editor, c.id)
        assert engine.rotation.current().name == "A"
        assert engine.rotation.current_index() == 0

    @pytest.mark.asyncio
    async def test_delete_before_current_keeps_same_person(self, engine, editor):
        a, b, c = await _seed(engine, editor, "A", "B", "C")
        await engine.rotation.set_current(editor, c.id)
        await engine.residents.delete(editor, a.id)
        assert engine.rotation.current().name == "C"
        assert engine.rotation.next_in_rotation().name == "B"

    @pytest.mark.asyncio
    async def test_delete_after_current_keeps_same_person(self, engine, editor):
        a, b, c = await _seed(engine, editor, "A", "B", "C")
        await engine.rotation.set_current(editor, a.id)
        await engine.residents.delete(editor, c.id)
        assert engine.rotation.current().name == "A"

    @pytest.mark.asyncio
    async def test_pointer_in_bounds_after_every_operation(self, engine, editor):
        residents = await _seed(engine, editor, "A", "B", "C", "D")
        await engine.rotation.set_current(editor, residents[3].id)
        for resident in reversed(residents):
            await engine.residents.delete(editor, resident.id)
            remaining = engine.residents.list()
            if remaining:
                assert 0 <= _raw_index(engine) < len(remaining)
                assert engine.rotation.current() in remaining
            await engine.rotation.skip(editor)

    @pytest.mark.asyncio
    async def test_delete_all_then_add_makes_new_resident_current(self, engine, editor):
        a, b = await _seed(engine, editor, "A", "B")
        await engine.rotation.skip(editor)
        await engine.residents.delete(editor, a.id)
        await engine.residents.delete(editor, b.id)
        with pytest.raises(EmptyRegistryError):
            engine.rotation.current()
        await engine.residents.add(editor, "Newcomer")
        assert engine.rotation.current().name == "Newcomer"
