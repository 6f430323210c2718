"""
Tests for ImportExportService: feed import, progress export and restore.
"""

import json
from datetime import date, datetime
from unittest.mock import patch

import pytest

from hsk_srs.domain.errors import EmptyFeed, InvalidFormat, StoreUnavailable
from hsk_srs.domain.progress import ProgressSnapshot
from hsk_srs.domain.vocabulary import ExampleSentence
from hsk_srs.services.import_export_service import (
    ImportExportService,
    normalize_feed_record,
    parse_examples,
    parse_snapshot,
)

TODAY = date(2024, 1, 1)


# =============================================================================
# Feed normalization
# =============================================================================


class TestParseExamples:
    def test_json_string(self):
        raw = '[{"simplified": "你好", "pinyin": "nǐ hǎo", "english": "hello"}]'
        assert parse_examples(raw) == [ExampleSentence("你好", "nǐ hǎo", "hello")]

    def test_list(self):
        raw = [{"simplified": "谢谢", "english": "thanks"}]
        assert parse_examples(raw) == [ExampleSentence("谢谢", "", "thanks")]

    @pytest.mark.parametrize("raw", [None, "", "[]", "not json", "{}", 5])
    def test_empty_or_unreadable(self, raw):
        assert parse_examples(raw) == []

    def test_items_without_simplified_are_dropped(self):
        raw = [{"pinyin": "x"}, "junk", {"simplified": "好"}]
        assert parse_examples(raw) == [ExampleSentence("好", "", "")]


class TestNormalizeFeedRecord:
    def test_progress_fields_are_reset(self, feed_records):
        entry = normalize_feed_record(feed_records[2], TODAY)

        assert entry.id == "c1"
        assert entry.level == -1
        assert entry.is_idiom
        assert entry.srs_level == 0
        assert entry.is_favorite is False
        assert entry.next_review == TODAY
        assert entry.examples == ()

    def test_integer_id_and_list_meanings(self, feed_records):
        entry = normalize_feed_record(feed_records[1], TODAY)

        assert entry.id == "2"
        assert entry.meanings == "eight; 8"
        assert entry.traditional == "八"
        assert entry.examples[0].english == "eight people"

    @pytest.mark.parametrize(
        "raw",
        [
            {"simplified": "好", "level": 1},
            {"id": 3, "level": 1},
            {"id": 3, "simplified": "好"},
            ["not", "a", "dict"],
        ],
    )
    def test_rejects_incomplete_records(self, raw):
        with pytest.raises(ValueError):
            normalize_feed_record(raw, TODAY)


# =============================================================================
# import_from_remote
# =============================================================================


class TestImportFromRemote:
    @pytest.mark.asyncio
    async def test_imports_all_records(self, import_export, store, feed_records):
        count = await import_export.import_from_remote(feed_records)

        assert count == 3
        assert await store.count() == 3
        love = await store.get("1")
        assert love.traditional == "愛"
        assert love.examples == (ExampleSentence("我爱你", "wǒ ài nǐ", "I love you"),)
        assert love.next_review == TODAY

    @pytest.mark.asyncio
    async def test_replaces_existing_vocabulary(self, import_export, store, make_entry, feed_records):
        await store.put_batch([make_entry("1", srs_level=6, is_favorite=True), make_entry("old")])

        await import_export.import_from_remote(feed_records)

        assert await store.get("old") is None
        replaced = await store.get("1")
        assert replaced.srs_level == 0
        assert replaced.is_favorite is False

    @pytest.mark.asyncio
    async def test_empty_feed_leaves_store_untouched(self, import_export, store, make_entry):
        await store.put_batch([make_entry(i) for i in range(3)])

        with pytest.raises(EmptyFeed):
            await import_export.import_from_remote([])

        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_feed_without_usable_records(self, import_export, store, make_entry):
        await store.put(make_entry("keep"))

        with pytest.raises(EmptyFeed):
            await import_export.import_from_remote([{"foo": "bar"}, {"id": 1}])

        assert await store.get("keep") is not None

    @pytest.mark.asyncio
    async def test_skips_bad_records(self, import_export, store, feed_records):
        count = await import_export.import_from_remote(feed_records + [{"id": 9}])

        assert count == 3
        assert await store.get("9") is None

    @pytest.mark.asyncio
    async def test_imports_in_batches(self, store, clock):
        service = ImportExportService(store, clock=clock, batch_size=4)
        records = [{"id": i, "simplified": f"字{i}", "level": 1} for i in range(10)]

        with patch.object(store, "put_batch", wraps=store.put_batch) as put_batch:
            count = await service.import_from_remote(records)

        assert count == 10
        assert [len(call.args[0]) for call in put_batch.call_args_list] == [4, 4, 2]

    @pytest.mark.asyncio
    async def test_clear_failure_aborts_import(self, import_export, store, make_entry, feed_records):
        await store.put_batch([make_entry("old1"), make_entry("old2")])

        with patch.object(store, "clear", side_effect=StoreUnavailable("locked")), patch.object(
            store, "put_batch", wraps=store.put_batch
        ) as put_batch:
            with pytest.raises(StoreUnavailable):
                await import_export.import_from_remote(feed_records)

        put_batch.assert_not_awaited()
        assert sorted(e.id for e in await store.get_all()) == ["old1", "old2"]

    @pytest.mark.asyncio
    async def test_write_failure_after_clear_propagates(
        self, store, settings_store, clock, make_entry, feed_records
    ):
        await store.put(make_entry("old"))
        service = ImportExportService(store, clock=clock, settings_store=settings_store)

        with patch.object(store, "put_batch", side_effect=StoreUnavailable("disk full")):
            with pytest.raises(StoreUnavailable):
                await service.import_from_remote(feed_records)

        assert await store.count() == 0
        assert await settings_store.get_setting("lastDatabaseImport") is None

    @pytest.mark.asyncio
    async def test_records_import_timestamp(self, store, settings_store, clock, feed_records):
        service = ImportExportService(store, clock=clock, settings_store=settings_store)

        await service.import_from_remote(feed_records)

        assert await settings_store.get_setting("lastDatabaseImport") == "2024-01-01T09:30:00"

    def test_rejects_bad_batch_size(self, store):
        with pytest.raises(ValueError):
            ImportExportService(store, batch_size=0)


# =============================================================================
# Progress export / import
# =============================================================================


class TestExportProgress:
    @pytest.mark.asyncio
    async def test_export_contents(self, import_export, store, make_entry):
        await store.put_batch(
            [
                make_entry("1", srs_level=3, correct_count=4, last_practiced=datetime(2023, 12, 30, 20, 0)),
                make_entry("2", is_favorite=True),
            ]
        )

        snapshot = await import_export.export_progress()

        assert snapshot.export_date == datetime(2024, 1, 1, 9, 30)
        rows = {row.id: row for row in snapshot.progress_data}
        assert rows["1"].srs_level == 3
        assert rows["1"].correct_count == 4
        assert rows["1"].last_practiced == datetime(2023, 12, 30, 20, 0)
        assert rows["2"].is_favorite is True

    @pytest.mark.asyncio
    async def test_json_uses_camel_case(self, import_export, store, make_entry):
        await store.put(make_entry("1"))

        data = json.loads((await import_export.export_progress()).to_json())

        assert set(data) == {"exportDate", "progressData"}
        row = data["progressData"][0]
        assert row["srsLevel"] == 0
        assert row["nextReview"] == "2024-01-01"
        assert "isFavorite" in row and "lastPracticed" in row

    @pytest.mark.asyncio
    async def test_empty_store(self, import_export):
        snapshot = await import_export.export_progress()
        assert snapshot.progress_data == []


class TestImportProgress:
    @pytest.mark.asyncio
    async def test_round_trip_after_reimport(self, import_export, repository, store, feed_records):
        await import_export.import_from_remote(feed_records)
        await repository.record_practice_outcome("1", True)
        await repository.toggle_favorite("2")
        before = await store.get_all()
        snapshot = await import_export.export_progress()

        await import_export.import_from_remote(feed_records)
        merged = await import_export.import_progress(snapshot)

        assert merged == 3
        assert await store.get_all() == before

    @pytest.mark.asyncio
    async def test_unknown_ids_are_skipped(self, import_export, store, make_entry):
        await store.put(make_entry("1"))
        data = {
            "exportDate": "2024-01-01T09:30:00",
            "progressData": [
                {"id": 1, "srsLevel": 4, "nextReview": "2024-01-20", "correctCount": 5},
                {"id": "ghost", "srsLevel": 2, "nextReview": "2024-01-05"},
            ],
        }

        merged = await import_export.import_progress(data)

        assert merged == 1
        assert await store.get("ghost") is None
        entry = await store.get("1")
        assert entry.srs_level == 4
        assert entry.next_review == date(2024, 1, 20)
        assert entry.correct_count == 5
        assert entry.simplified == "词1"

    @pytest.mark.asyncio
    async def test_accepts_json_text(self, import_export, store, make_entry):
        await store.put(make_entry("1"))
        text = json.dumps(
            {
                "exportDate": "2024-01-01T09:30:00",
                "progressData": [
                    {"id": "1", "srsLevel": 99, "nextReview": "2024-03-01", "isFavorite": True}
                ],
            }
        )

        assert await import_export.import_progress(text) == 1
        entry = await store.get("1")
        assert entry.srs_level == 7
        assert entry.is_favorite is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"progressData": []},
            {"exportDate": "2024-01-01T00:00:00", "progressData": "nope"},
            {"exportDate": "2024-01-01T00:00:00", "progressData": [{"id": "1"}]},
            {"exportDate": "2024-01-01T00:00:00", "progressData": [{"id": "1", "nextReview": "x"}]},
            "{not json",
        ],
    )
    async def test_invalid_snapshot_writes_nothing(self, import_export, store, make_entry, payload):
        await store.put(make_entry("1", srs_level=2))

        with pytest.raises(InvalidFormat):
            await import_export.import_progress(payload)

        assert (await store.get("1")).srs_level == 2

    @pytest.mark.asyncio
    async def test_store_failure_returns_partial_count(self, store, clock, make_entry):
        await store.put_batch([make_entry("1"), make_entry("2")])
        service = ImportExportService(store, clock=clock, batch_size=1)
        snapshot = ProgressSnapshot(
            export_date=datetime(2024, 1, 1),
            progress_data=[
                {"id": "1", "srsLevel": 3, "nextReview": "2024-01-08"},
                {"id": "2", "srsLevel": 3, "nextReview": "2024-01-08"},
            ],
        )
        real_put_batch = store.put_batch
        calls = []

        async def flaky_put_batch(entries):
            calls.append(entries)
            if len(calls) == 2:
                raise StoreUnavailable("disk gone")
            return await real_put_batch(entries)

        with patch.object(store, "put_batch", side_effect=flaky_put_batch):
            merged = await service.import_progress(snapshot)

        assert merged == 1
        assert (await store.get("1")).srs_level == 3
        assert (await store.get("2")).srs_level == 0


class TestProgressFiles:
    @pytest.mark.asyncio
    async def test_file_round_trip(self, import_export, store, make_entry, tmp_path):
        await store.put_batch([make_entry("1", srs_level=5, correct_count=2), make_entry("2")])
        path = await import_export.export_progress_to_file(tmp_path / "backup" / "progress.json")

        assert path.exists()
        await store.put(make_entry("1"))
        merged = await import_export.import_progress_from_file(path)

        assert merged == 2
        restored = await store.get("1")
        assert restored.srs_level == 5
        assert restored.correct_count == 2

    def test_parse_snapshot_passthrough(self):
        snapshot = ProgressSnapshot(export_date=datetime(2024, 1, 1), progress_data=[])
        assert parse_snapshot(snapshot) is snapshot
