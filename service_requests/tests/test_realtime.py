import random

from django.test import SimpleTestCase

from service_requests.realtime import ChangeEvent, EventType, RequestStateMerger


def row(record_id, table_id, status="pending", request_type="table_clean"):
    return {"id": record_id, "table_id": table_id, "status": status, "type": request_type}


class ChangeEventTests(SimpleTestCase):
    def test_message_round_trip(self):
        event = ChangeEvent(EventType.UPDATE, 7, 3)
        self.assertEqual(ChangeEvent.from_message(event.to_message()), event)

    def test_unknown_event_type_rejected(self):
        with self.assertRaises(ValueError):
            ChangeEvent("TRUNCATE", 1, 1)

    def test_delete_needs_no_fetch(self):
        self.assertFalse(ChangeEvent(EventType.DELETE, 1, 1).needs_fetch)
        self.assertTrue(ChangeEvent(EventType.INSERT, 1, 1).needs_fetch)


class RequestStateMergerTests(SimpleTestCase):
    def setUp(self):
        self.merger = RequestStateMerger({1, 2}, [row(2, 1), row(1, 2), row(9, 99)])

    def test_baseline_drops_rows_outside_table_set(self):
        self.assertEqual([r["id"] for r in self.merger.requests], [2, 1])

    def test_insert_prepends(self):
        changed = self.merger.apply(ChangeEvent(EventType.INSERT, 3, 2), row(3, 2))
        self.assertTrue(changed)
        self.assertEqual([r["id"] for r in self.merger.requests], [3, 2, 1])

    def test_update_replaces_in_place(self):
        self.merger.apply(ChangeEvent(EventType.UPDATE, 1, 2), row(1, 2, status="completed"))
        self.assertEqual([r["id"] for r in self.merger.requests], [2, 1])
        self.assertEqual(self.merger.get(1)["status"], "completed")

    def test_update_for_unknown_row_is_upserted(self):
        self.merger.apply(ChangeEvent(EventType.UPDATE, 5, 1), row(5, 1, status="in_progress"))
        self.assertEqual(self.merger.requests[0]["id"], 5)

    def test_delete_removes(self):
        self.assertTrue(self.merger.apply(ChangeEvent(EventType.DELETE, 2, 1)))
        self.assertIsNone(self.merger.get(2))

    def test_missing_record_is_treated_as_delete(self):
        self.assertTrue(self.merger.apply(ChangeEvent(EventType.UPDATE, 2, 1), None))
        self.assertIsNone(self.merger.get(2))

    def test_events_for_other_tables_are_ignored(self):
        self.assertFalse(self.merger.apply(ChangeEvent(EventType.INSERT, 50, 99), row(50, 99)))
        self.assertIsNone(self.merger.get(50))

    def test_untrack_table_drops_its_rows(self):
        self.merger.untrack_table(1)
        self.assertEqual([r["id"] for r in self.merger.requests], [1])
        self.assertFalse(self.merger.accepts(ChangeEvent(EventType.INSERT, 4, 1)))

    def test_track_table_accepts_new_events(self):
        self.merger.track_table(99)
        self.assertTrue(self.merger.apply(ChangeEvent(EventType.INSERT, 50, 99), row(50, 99)))

    def test_sequential_application_matches_source_of_truth(self):
        """Replaying writes in order leaves exactly the in-scope rows of the store."""
        rng = random.Random(1234)
        store = {}
        merger = RequestStateMerger({1, 2, 3})
        next_id = 1
        for _ in range(500):
            op = rng.choice(["insert", "insert", "update", "delete"])
            if op == "insert" or not store:
                record = row(next_id, rng.choice([1, 2, 3, 4]))
                store[next_id] = record
                event = ChangeEvent(EventType.INSERT, next_id, record["table_id"])
                next_id += 1
            elif op == "update":
                record_id = rng.choice(list(store))
                store[record_id] = dict(store[record_id], status=rng.choice(["pending", "in_progress", "completed"]))
                event = ChangeEvent(EventType.UPDATE, record_id, store[record_id]["table_id"])
            else:
                record_id = rng.choice(list(store))
                deleted = store.pop(record_id)
                event = ChangeEvent(EventType.DELETE, record_id, deleted["table_id"])
            merger.apply(event, store.get(event.record_id))

        expected = {rid: r for rid, r in store.items() if r["table_id"] in {1, 2, 3}}
        self.assertEqual({r["id"]: r for r in merger.requests}, expected)
        # newest first
        ids = [r["id"] for r in merger.requests]
        self.assertEqual(ids, sorted(ids, reverse=True))
