import pytest

from rental_core.collection import Collection, coerce_id, next_id
from rental_core.exceptions import RecordNotFoundError
from rental_core.models import BOOKINGS, COMPLAINTS


def _writable(records=None, schema=BOOKINGS):
    return Collection(schema, records or [], writable=True)


def test_next_id_is_one_past_the_maximum():
    assert next_id(_writable()) == 1
    assert next_id(_writable([{"bookingId": 3}, {"bookingId": 9}, {"bookingId": 4}])) == 10


def test_next_id_ignores_unusable_ids():
    collection = _writable(
        [{"complaintId": "5"}, {"complaintId": "abc"}, {"complaintId": None}, {}],
        schema=COMPLAINTS,
    )
    assert next_id(collection) == 6


def test_insert_assigns_id_and_appends():
    collection = _writable([{"bookingId": 2, "propertyId": 1}])

    stored = collection.insert({"propertyId": 5, "bookingId": 999})

    assert stored["bookingId"] == 3
    assert [record["bookingId"] for record in collection.records] == [2, 3]
    assert collection.dirty


def test_insert_after_removal_reuses_only_above_current_max():
    collection = _writable()
    for _ in range(3):
        collection.insert({})
    collection.remove(2)

    assert collection.insert({})["bookingId"] == 4


def test_update_with_mapping_preserves_id_and_untouched_fields():
    collection = _writable([{"bookingId": 1, "propertyId": 4, "note": "keep"}])

    updated = collection.update(1, {"propertyId": 8, "bookingId": 77})

    assert updated == {"bookingId": 1, "propertyId": 8, "note": "keep"}
    assert collection.records[0] == updated


def test_update_with_callable_edits_working_copy():
    collection = _writable([{"bookingId": 1, "tags": ["a"]}])

    def add_tag(record):
        record["tags"].append("b")

    assert collection.update(1, add_tag)["tags"] == ["a", "b"]


def test_update_missing_record_raises_not_found():
    with pytest.raises(RecordNotFoundError):
        _writable([{"bookingId": 1}]).update(2, {"x": 1})


def test_remove_reports_whether_a_record_was_dropped():
    collection = _writable([{"bookingId": 1}, {"bookingId": 2}])

    assert collection.remove(1) is True
    assert collection.remove(1) is False
    assert [record["bookingId"] for record in collection.records] == [2]


def test_mark_status_keeps_the_record():
    collection = _writable([{"bookingId": 1, "bookingStatus": True}])

    collection.mark_status(1, "bookingStatus", False)

    assert collection.records == [{"bookingId": 1, "bookingStatus": False}]


def test_find_all_is_restartable_and_returns_copies():
    collection = _writable([{"bookingId": 1, "propertyId": 1}, {"bookingId": 2, "propertyId": 2}])
    query = collection.find_all(lambda record: record["propertyId"] == 2)

    first = list(query)
    first[0]["propertyId"] = 99

    assert list(query) == [{"bookingId": 2, "propertyId": 2}]
    assert query.count() == 1
    assert not collection.dirty


def test_string_ids_are_matched_numerically():
    collection = _writable([{"bookingId": "12"}])

    assert collection.get(12) == {"bookingId": "12"}
    assert coerce_id(True) == 0


def test_read_only_snapshot_rejects_mutation():
    collection = Collection(BOOKINGS, [{"bookingId": 1}])

    with pytest.raises(RuntimeError):
        collection.insert({})
    with pytest.raises(RuntimeError):
        collection.remove(1)
