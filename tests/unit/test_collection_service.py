"""Unit tests for CollectionService against a mocked Firestore client."""

from datetime import datetime, timedelta, timezone
import importlib
from itertools import count
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as core_exceptions
from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.cloud import firestore

from marketdb.apis.Db import Db
from marketdb.config.settings import StoreSettings
from marketdb.documents.CollectionService import CollectionService
from marketdb.exceptions import LimitExceededError, NotFoundError, ValidationError
from marketdb.models.firestore_types import ProjectDoc
from marketdb.models.query_types import InMemoryScan, QueryOptions

collection_module = importlib.import_module("marketdb.documents.CollectionService")

STORED_AT = DatetimeWithNanoseconds(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def make_snapshot(doc_id, data=None, exists=True, path="projects"):
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = exists
    snapshot.to_dict.return_value = data if exists else None
    snapshot.reference.path = f"{path}/{doc_id}"
    return snapshot


def project_data(title="Kitchen remodel", **overrides):
    data = {
        "title": title,
        "ownerId": "owner-1",
        "status": "OPEN",
        "createdAt": STORED_AT,
        "updatedAt": STORED_AT,
    }
    data.update(overrides)
    return data


class FakeCollection:
    """Wires document() to one MagicMock reference per id."""

    def __init__(self, collection):
        self.collection = collection
        self.refs = {}
        self._auto = count(1)
        collection.document.side_effect = self.document
        # Query builders return the collection so results come from stream()
        for method in ("where", "order_by", "limit", "start_after", "start_at", "end_before", "end_at"):
            getattr(collection, method).return_value = collection

    def document(self, doc_id=None):
        doc_id = doc_id or f"auto-{next(self._auto)}"
        if doc_id not in self.refs:
            ref = MagicMock()
            ref.id = doc_id
            ref.path = f"projects/{doc_id}"
            self.refs[doc_id] = ref
        return self.refs[doc_id]


@pytest.fixture
def collection(mock_firestore):
    return FakeCollection(mock_firestore.collection.return_value)


@pytest.fixture
def service(db):
    return CollectionService(db, "projects", ProjectDoc)


class TestConstruction:

    def test_requires_collection_name(self, db):
        with pytest.raises(ValidationError):
            CollectionService(db)

    def test_subclass_attributes(self, db):
        class Projects(CollectionService[ProjectDoc]):
            collection_name = "projects"
            pydantic_model = ProjectDoc

        projects = Projects(db)
        assert projects.path == "projects"
        assert projects.pydantic_model is ProjectDoc

    def test_rejects_ids_with_slashes(self, service, collection):
        with pytest.raises(ValidationError):
            service.get_by_id("a/b")


class TestCreate:

    def test_create_stamps_and_rereads(self, service, collection, mock_firestore):
        ref = collection.document("auto-1")
        ref.get.return_value = make_snapshot("auto-1", project_data())

        created = service.create({"title": "Kitchen remodel", "ownerId": "owner-1", "status": "OPEN"})

        mock_firestore.collection.assert_called_with("projects")
        payload = ref.set.call_args.args[0]
        assert payload["title"] == "Kitchen remodel"
        assert payload["createdAt"] == payload["updatedAt"]
        assert isinstance(payload["createdAt"], DatetimeWithNanoseconds)
        ref.get.assert_called_once_with()

        assert isinstance(created, ProjectDoc)
        assert created.id == "auto-1"
        assert created.title == "Kitchen remodel"
        assert type(created.createdAt) is datetime

    def test_managed_fields_are_stripped(self, service, collection):
        ref = collection.document("p1")
        ref.get.return_value = make_snapshot("p1", project_data())

        service.create_with_id("p1", {
            "id": "other",
            "createdAt": datetime(2000, 1, 1),
            "title": "Kitchen remodel",
            "ownerId": "owner-1",
        })

        payload = ref.set.call_args.args[0]
        assert "id" not in payload
        assert payload["createdAt"] != datetime(2000, 1, 1, tzinfo=timezone.utc)

    def test_invalid_payload_is_rejected_before_writing(self, service, collection):
        ref = collection.document("auto-1")

        with pytest.raises(ValidationError) as exc_info:
            service.create({"ownerId": "owner-1"})

        assert exc_info.value.status_code == 400
        assert "ProjectDoc" in exc_info.value.message
        ref.set.assert_not_called()
        ref.get.assert_not_called()

    def test_store_failure_propagates(self, service, collection):
        ref = collection.document("p1")
        ref.set.side_effect = core_exceptions.ServiceUnavailable("down")

        with pytest.raises(core_exceptions.ServiceUnavailable):
            service.create_with_id("p1", {"title": "x", "ownerId": "o"})
        ref.get.assert_not_called()


class TestRead:

    def test_get_by_id_missing_returns_none(self, service, collection):
        collection.document("p1").get.return_value = make_snapshot("p1", exists=False)
        assert service.get_by_id("p1") is None

    def test_get_by_id_decodes_document(self, service, collection):
        collection.document("p1").get.return_value = make_snapshot("p1", project_data())

        project = service.get_by_id("p1")

        assert project.id == "p1"
        assert project.createdAt == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_exists(self, service, collection):
        collection.document("p1").get.return_value = make_snapshot("p1", exists=False)
        assert service.exists("p1") is False

    def test_get_many_preserves_order_and_skips_missing(self, service, collection, mock_firestore):
        mock_firestore.get_all.return_value = [
            make_snapshot("b", project_data("B")),
            make_snapshot("c", exists=False),
            make_snapshot("a", project_data("A")),
        ]

        result = service.get_many(["a", "b", "c", "a"])

        assert [doc.id for doc in result] == ["a", "b"]
        refs = mock_firestore.get_all.call_args.args[0]
        assert [ref.id for ref in refs] == ["a", "b", "c"]

    def test_get_many_empty_makes_no_call(self, service, mock_firestore):
        assert service.get_many([]) == []
        mock_firestore.get_all.assert_not_called()


class TestUpdate:

    def test_missing_document_raises_before_any_write(self, service, collection):
        ref = collection.document("p1")
        ref.get.return_value = make_snapshot("p1", exists=False)

        with pytest.raises(NotFoundError) as exc_info:
            service.update("p1", {"status": "CLOSED"})

        assert exc_info.value.status_code == 404
        ref.update.assert_not_called()
        ref.set.assert_not_called()

    def test_writes_partial_and_returns_fresh_document(self, service, collection):
        ref = collection.document("p1")
        ref.get.side_effect = [
            make_snapshot("p1", project_data()),
            make_snapshot("p1", project_data(status="CLOSED")),
        ]

        updated = service.update("p1", {"status": "CLOSED"})

        payload = ref.update.call_args.args[0]
        ref.set.assert_not_called()
        assert set(payload) == {"status", "updatedAt"}
        assert payload["updatedAt"] >= STORED_AT
        assert updated.status == "CLOSED"

    def test_updated_at_never_moves_backwards(self, service, collection):
        future = DatetimeWithNanoseconds.now(timezone.utc) + timedelta(hours=1)
        ref = collection.document("p1")
        ref.get.return_value = make_snapshot("p1", project_data(updatedAt=future))

        service.update("p1", {"status": "CLOSED"})

        assert ref.update.call_args.args[0]["updatedAt"] >= future

    def test_delete_is_unconditional(self, service, collection):
        service.delete("p1")
        collection.document("p1").delete.assert_called_once_with()

    @patch("google.cloud.firestore.transactional", side_effect=lambda fn: fn)
    def test_every_partial_write_uses_update(self, mock_transactional, service, collection, mock_firestore):
        ref = collection.document("p1")
        ref.get.return_value = make_snapshot("p1", project_data())
        batch = mock_firestore.batch.return_value
        transaction = mock_firestore.transaction.return_value
        data = {"metadata": {"a": 1}}

        service.update("p1", data)
        service.batch_update([{"id": "p1", "data": data}])
        service.run_transaction(lambda ctx: ctx.update("p1", data))

        payloads = [
            ref.update.call_args.args[0],
            batch.update.call_args.args[1],
            transaction.update.call_args.args[1],
        ]
        for payload in payloads:
            assert set(payload) == {"metadata", "updatedAt"}
            assert payload["metadata"] == {"a": 1}
        ref.set.assert_not_called()
        batch.set.assert_not_called()
        transaction.set.assert_not_called()


class TestTimeouts:

    def test_explicit_timeout_is_forwarded(self, service, collection):
        ref = collection.document("p1")
        ref.get.return_value = make_snapshot("p1", project_data())

        service.get_by_id("p1", timeout=5)

        ref.get.assert_called_once_with(timeout=5)

    def test_default_timeout_from_settings(self, mock_firestore, collection):
        db = Db(settings=StoreSettings(project_id="test-project", default_timeout=3), client=mock_firestore)
        service = CollectionService(db, "projects", ProjectDoc)
        ref = collection.document("p1")
        ref.get.return_value = make_snapshot("p1", project_data())

        service.update("p1", {"status": "CLOSED"})

        ref.update.assert_called_once()
        assert ref.update.call_args.kwargs == {"timeout": 3}


class TestQuery:

    def test_applies_where_order_cursor_limit(self, service, collection):
        collection.collection.stream.return_value = [make_snapshot("p1", project_data())]

        results = service.query({
            "where": [
                {"field": "status", "operator": "==", "value": "OPEN"},
                {"field": "tags", "operator": "array-contains", "value": "kitchen"},
            ],
            "orderBy": [{"field": "createdAt", "direction": "desc"}],
            "startAfter": {"createdAt": datetime(2024, 1, 1)},
            "limit": 10,
        })

        raw = collection.collection
        filters = [call.kwargs["filter"] for call in raw.where.call_args_list]
        assert [(f.field_path, f.op_string, f.value) for f in filters] == [
            ("status", "==", "OPEN"),
            ("tags", "array_contains", "kitchen"),
        ]
        raw.order_by.assert_called_once_with("createdAt", direction=firestore.Query.DESCENDING)
        cursor = raw.start_after.call_args.args[0]
        assert isinstance(cursor["createdAt"], DatetimeWithNanoseconds)
        raw.limit.assert_called_once_with(10)
        assert [doc.id for doc in results] == ["p1"]

    def test_date_filter_values_are_encoded(self, service, collection):
        collection.collection.stream.return_value = []

        service.query({"where": [{"field": "bidDeadline", "operator": "<", "value": datetime(2024, 6, 1)}]})

        clause = collection.collection.where.call_args.kwargs["filter"]
        assert isinstance(clause.value, DatetimeWithNanoseconds)

    def test_invalid_operator_is_rejected(self, service):
        with pytest.raises(ValidationError):
            service.query({"where": [{"field": "status", "operator": "like", "value": "x"}]})

    def test_non_positive_limit_is_rejected(self, service):
        with pytest.raises(ValidationError):
            service.query({"limit": 0})


class TestPagination:

    def test_has_more_when_more_documents_than_limit(self, service, collection):
        # The store honours limit + 1 = 6 over 7 matching documents
        collection.collection.stream.return_value = [
            make_snapshot(f"p{i}", project_data(f"P{i}")) for i in range(6)
        ]

        page = service.query_paginated(QueryOptions(limit=5))

        collection.collection.limit.assert_called_once_with(6)
        assert len(page.data) == 5
        assert page.hasMore is True
        assert page.cursor is collection.document("p4").get.return_value
        assert page.total is None

    def test_last_page(self, service, collection):
        collection.collection.stream.return_value = [
            make_snapshot(f"p{i}", project_data(f"P{i}")) for i in range(3)
        ]

        page = service.query_paginated({"limit": 5})

        assert len(page.data) == 3
        assert page.hasMore is False

    def test_default_page_size(self, service, collection):
        collection.collection.stream.return_value = []

        page = service.query_paginated()

        collection.collection.limit.assert_called_once_with(21)
        assert page.data == []
        assert page.cursor is None

    def test_include_total(self, service, collection):
        collection.collection.stream.return_value = []
        collection.collection.count.return_value.get.return_value = [[MagicMock(value=12)]]

        page = service.query_paginated({"limit": 5}, include_total=True)

        assert page.total == 12

    def test_count(self, service, collection):
        collection.collection.count.return_value.get.return_value = [[MagicMock(value=42)]]

        total = service.count([{"field": "status", "operator": "==", "value": "OPEN"}])

        assert total == 42
        collection.collection.count.assert_called_once_with(alias="count")


class TestBatches:

    def test_empty_batches_are_noops(self, service, mock_firestore):
        assert service.batch_create([]) == []
        service.batch_update([])
        service.batch_delete([])
        mock_firestore.batch.assert_not_called()

    def test_batch_create_uses_one_timestamp(self, service, collection, mock_firestore):
        batch = mock_firestore.batch.return_value
        mock_firestore.get_all.return_value = [
            make_snapshot("auto-1", project_data("A")),
            make_snapshot("auto-2", project_data("B")),
        ]

        created = service.batch_create([
            {"title": "A", "ownerId": "o"},
            {"title": "B", "ownerId": "o"},
        ])

        assert batch.set.call_count == 2
        stamps = {call.args[1]["createdAt"] for call in batch.set.call_args_list}
        assert len(stamps) == 1
        batch.commit.assert_called_once_with()
        assert [doc.title for doc in created] == ["A", "B"]

    def test_batch_create_validates_every_item_first(self, service, collection, mock_firestore):
        with pytest.raises(ValidationError):
            service.batch_create([{"title": "A", "ownerId": "o"}, {"title": "B"}])

        mock_firestore.batch.assert_not_called()
        for ref in collection.refs.values():
            ref.set.assert_not_called()

    def test_batch_update_and_delete(self, service, collection, mock_firestore):
        batch = mock_firestore.batch.return_value

        service.batch_update([{"id": "p1", "data": {"status": "CLOSED"}}])
        service.batch_delete(["p1", "p2"])

        ref, payload = batch.update.call_args.args
        assert ref is collection.document("p1")
        assert set(payload) == {"status", "updatedAt"}
        assert batch.delete.call_count == 2
        assert batch.commit.call_count == 2

    def test_failed_commit_propagates(self, service, collection, mock_firestore):
        batch = mock_firestore.batch.return_value
        batch.commit.side_effect = core_exceptions.NotFound("missing document")

        with pytest.raises(core_exceptions.NotFound):
            service.batch_update([{"id": "p1", "data": {"status": "CLOSED"}}])

        collection.document("p1").set.assert_not_called()
        collection.document("p1").update.assert_not_called()

    def test_failed_batch_create_writes_nothing_directly(self, service, collection, mock_firestore):
        mock_firestore.batch.return_value.commit.side_effect = core_exceptions.ServiceUnavailable("down")

        with pytest.raises(core_exceptions.ServiceUnavailable):
            service.batch_create([{"title": "A", "ownerId": "o"}, {"title": "B", "ownerId": "o"}])

        for ref in collection.refs.values():
            ref.set.assert_not_called()
        mock_firestore.get_all.assert_not_called()

    def test_more_operations_than_batch_limit(self, mock_firestore, collection):
        db = Db(settings=StoreSettings(project_id="test-project", batch_limit=2), client=mock_firestore)
        service = CollectionService(db, "projects", ProjectDoc)

        with pytest.raises(LimitExceededError):
            service.batch_delete(["a", "b", "c"])
        mock_firestore.batch.assert_not_called()


class TestQueryInMemory:

    def test_search_predicate_and_paging(self, service, collection):
        collection.collection.stream.return_value = [
            make_snapshot("p1", project_data("Kitchen remodel")),
            make_snapshot("p2", project_data("Bathroom")),
            make_snapshot("p3", project_data("New kitchen", status="CLOSED")),
            make_snapshot("p4", project_data("KITCHEN tiles")),
        ]

        result = service.query_in_memory(
            scan=InMemoryScan(search="kitchen", searchFields=["title"], pageSize=1),
            predicate=lambda project: project.status == "OPEN",
        )

        assert [doc.id for doc in result.data] == ["p1"]
        assert result.total == 2
        assert result.hasMore is True
        assert result.scanned == 4
        assert result.truncated is False
        collection.collection.limit.assert_called_once_with(1000)

    def test_truncated_scan_logs_warning(self, service, collection):
        collection.collection.stream.return_value = [
            make_snapshot(f"p{i}", project_data()) for i in range(3)
        ]

        with patch.object(collection_module, "logger") as mock_logger:
            result = service.query_in_memory(scan={"cap": 3})

        assert result.truncated is True
        mock_logger.warning.assert_called_once()

    def test_limit_below_cap_full_window_is_truncated(self, service, collection):
        collection.collection.stream.return_value = [
            make_snapshot(f"p{i}", project_data()) for i in range(10)
        ]

        result = service.query_in_memory({"limit": 10}, {"pageSize": 5})

        collection.collection.limit.assert_called_once_with(10)
        assert result.scanned == 10
        assert result.truncated is True
        assert result.hasMore is True

    def test_cap_above_maximum_is_rejected(self, service):
        with pytest.raises(ValidationError):
            service.query_in_memory(scan={"cap": 1001})
