import asyncio
import re
from datetime import datetime

import pytest

from dms.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    FILE_NOT_IN_STORAGE,
    FILE_TOO_LARGE,
    FILE_TYPE_NOT_ALLOWED,
    STORAGE_QUOTA_EXCEEDED,
)
from dms.schemas import DocumentCopyRequest, DocumentListQuery, DocumentSearchQuery, DocumentUpdate
from dms.services.document_service import relevance
from tests.conftest import QUOTA_LIMIT

KEY_PATTERN = re.compile(r"^documents/user_owner/\d{4}/\d{2}/\d{2}/[0-9a-f-]{36}\.pdf$")


async def used_bytes(quota, owner_id) -> int:
    return (await quota.get_storage_info(owner_id)).used


# Uploads

async def test_presigned_upload_url_shape(document_service, owner_id):
    result = await document_service.get_presigned_upload_url(owner_id, "Report.PDF", "application/pdf", 2048)

    assert KEY_PATTERN.match(result.key)
    assert result.expires_in == 3600
    assert result.upload_url.startswith("https://storage.test/")
    assert result.key in result.upload_url


@pytest.mark.parametrize("file_name", ["script.exe", "noextension"])
async def test_presigned_upload_rejects_file_type(document_service, owner_id, file_name):
    with pytest.raises(ValidationError) as exc:
        await document_service.get_presigned_upload_url(owner_id, file_name, "application/octet-stream", 10)
    assert exc.value.code == FILE_TYPE_NOT_ALLOWED


async def test_presigned_upload_rejects_large_file(document_service, owner_id):
    with pytest.raises(ValidationError) as exc:
        await document_service.get_presigned_upload_url(owner_id, "big.pdf", "application/pdf", 101 * 1024 * 1024)
    assert exc.value.code == FILE_TOO_LARGE


async def test_presigned_upload_checks_quota(document_service, owner_id):
    with pytest.raises(ValidationError) as exc:
        await document_service.get_presigned_upload_url(owner_id, "a.pdf", "application/pdf", QUOTA_LIMIT + 1)
    assert exc.value.code == STORAGE_QUOTA_EXCEEDED


async def test_confirm_upload_creates_document_and_charges_quota(
    document_service, folder_service, storage, quota, owner_id
):
    folder = await folder_service.create_folder(owner_id, "Inbox")
    presigned = await document_service.get_presigned_upload_url(owner_id, "scan.pdf", "application/pdf", 4)
    storage.put(presigned.key, b"%PDF", "application/pdf")

    doc = await document_service.confirm_upload(
        owner_id, presigned.key, name="Scan", folder_id=str(folder.id), tags=["inbox"], metadata={"pages": 1}
    )

    assert (doc.name, doc.size, doc.mime_type, doc.extension) == ("Scan", 4, "application/pdf", "pdf")
    assert doc.folder_id == folder.id
    assert doc.storage_key == presigned.key
    assert doc.tags == ["inbox"]
    assert await used_bytes(quota, owner_id) == 4


async def test_confirm_upload_requires_object_in_storage(document_service, owner_id):
    presigned = await document_service.get_presigned_upload_url(owner_id, "scan.pdf", "application/pdf", 4)
    with pytest.raises(ValidationError) as exc:
        await document_service.confirm_upload(owner_id, presigned.key)
    assert exc.value.code == FILE_NOT_IN_STORAGE


async def test_confirm_upload_rejects_foreign_key(document_service, storage, owner_id, other_owner_id):
    presigned = await document_service.get_presigned_upload_url(other_owner_id, "scan.pdf", "application/pdf", 4)
    storage.put(presigned.key, b"%PDF")
    with pytest.raises(ValidationError) as exc:
        await document_service.confirm_upload(owner_id, presigned.key)
    assert exc.value.code == FILE_NOT_IN_STORAGE


async def test_confirm_upload_twice_conflicts(document_service, storage, owner_id):
    presigned = await document_service.get_presigned_upload_url(owner_id, "scan.pdf", "application/pdf", 4)
    storage.put(presigned.key, b"%PDF")
    await document_service.confirm_upload(owner_id, presigned.key)
    with pytest.raises(ConflictError):
        await document_service.confirm_upload(owner_id, presigned.key)


async def test_confirm_upload_over_quota_removes_object(document_service, storage, quota, owner_id):
    await quota.adjust_used(owner_id, QUOTA_LIMIT - 2)
    presigned = await document_service.get_presigned_upload_url(owner_id, "scan.pdf", "application/pdf", 1)
    storage.put(presigned.key, b"%PDF")

    with pytest.raises(ValidationError) as exc:
        await document_service.confirm_upload(owner_id, presigned.key)

    assert exc.value.code == STORAGE_QUOTA_EXCEEDED
    assert presigned.key not in storage.objects


async def test_upload_direct(document_service, storage, quota, owner_id):
    doc = await document_service.upload_direct(
        owner_id, b"a,b\n1,2\n", "table.csv", "application/octet-stream", tags=["data"]
    )

    assert doc.mime_type == "text/csv"
    assert doc.extension == "csv"
    assert storage.objects[doc.storage_key]["data"] == b"a,b\n1,2\n"
    assert await used_bytes(quota, owner_id) == 8


async def test_upload_direct_validates_folder(document_service, owner_id):
    with pytest.raises(NotFoundError):
        await document_service.upload_direct(owner_id, b"x", "a.txt", "text/plain", folder_id="64b000000000000000000000")


async def test_upload_direct_over_quota_stores_nothing(document_service, storage, owner_id):
    with pytest.raises(ValidationError) as exc:
        await document_service.upload_direct(owner_id, b"x" * (QUOTA_LIMIT + 1), "big.txt", "text/plain")
    assert exc.value.code == STORAGE_QUOTA_EXCEEDED
    assert storage.objects == {}


# Reads

async def test_get_document_with_download_url(document_service, make_document, owner_id, other_owner_id):
    doc = await make_document()
    found, url = await document_service.get_document(str(doc.id), owner_id)
    assert found.id == doc.id
    assert doc.storage_key in url

    with pytest.raises(NotFoundError):
        await document_service.get_document(str(doc.id), other_owner_id)


async def test_download_returns_bytes(document_service, make_document, owner_id):
    doc = await make_document(data=b"payload")
    content, found = await document_service.download(str(doc.id), owner_id)
    assert content == b"payload"
    assert found.id == doc.id

    link = await document_service.get_download_url(str(doc.id), owner_id)
    assert link.expires_in == 3600


async def test_list_documents_filters(document_service, folder_service, make_document, owner_id):
    folder = await folder_service.create_folder(owner_id, "Work")
    await make_document("budget.txt", data=b"1" * 10, folder_id=str(folder.id), tags=["finance", "2024"])
    await make_document("notes.txt", data=b"1" * 100, folder_id=str(folder.id), tags=["finance"])
    await make_document("root.csv", data=b"1" * 1000)

    _, total = await document_service.list_documents(owner_id, DocumentListQuery())
    assert total == 3

    docs, total = await document_service.list_documents(owner_id, DocumentListQuery(folder_id=None))
    assert [d.name for d in docs] == ["root.csv"]

    docs, _ = await document_service.list_documents(owner_id, DocumentListQuery(folder_id=str(folder.id), sort_by="name", sort_order="asc"))
    assert [d.name for d in docs] == ["budget.txt", "notes.txt"]

    docs, _ = await document_service.list_documents(owner_id, DocumentListQuery(tags=["finance", "2024"]))
    assert [d.name for d in docs] == ["budget.txt"]

    docs, _ = await document_service.list_documents(owner_id, DocumentListQuery(search="NOTE"))
    assert [d.name for d in docs] == ["notes.txt"]

    docs, _ = await document_service.list_documents(owner_id, DocumentListQuery(extension=".CSV"))
    assert [d.name for d in docs] == ["root.csv"]

    docs, _ = await document_service.list_documents(owner_id, DocumentListQuery(min_size=50, max_size=500))
    assert [d.name for d in docs] == ["notes.txt"]

    docs, total = await document_service.list_documents(owner_id, DocumentListQuery(sort_by="size", limit=1, page=2))
    assert total == 3
    assert [d.name for d in docs] == ["notes.txt"]


@pytest.fixture
async def search_corpus(document_service, folder_service, make_document, owner_id, other_owner_id):
    work = await folder_service.create_folder(owner_id, "Work")
    report = await document_service.upload_direct(
        owner_id, b"r" * 30, "Quarterly Report.pdf", "application/pdf",
        folder_id=str(work.id), tags=["finance", "q1"],
    )
    budget = await make_document("Budget Analysis.xlsx", data=b"b" * 20, tags=["finance"])
    notes = await make_document("report-notes.txt", data=b"n" * 10, tags=["draft"])
    proposal = await document_service.upload_direct(
        owner_id, b"p" * 50, "Project Proposal.pdf", "application/pdf", tags=["sales"]
    )
    await make_document("report.txt", owner=other_owner_id)
    return {"work": work, "report": report, "budget": budget, "notes": notes, "proposal": proposal}


async def search_names(document_service, owner_id, **params):
    docs, _, _ = await document_service.search_documents(owner_id, DocumentSearchQuery(**params))
    return sorted(d.name for d in docs)


async def test_search_terms_span_name_tags_and_extension(document_service, search_corpus, owner_id):
    assert await search_names(document_service, owner_id, query="report") == [
        "Quarterly Report.pdf", "report-notes.txt"
    ]
    assert await search_names(document_service, owner_id, query="PDF") == [
        "Project Proposal.pdf", "Quarterly Report.pdf"
    ]
    assert await search_names(document_service, owner_id, query="finance") == [
        "Budget Analysis.xlsx", "Quarterly Report.pdf"
    ]
    # every term has to match somewhere
    assert await search_names(document_service, owner_id, query="report finance") == ["Quarterly Report.pdf"]
    assert await search_names(document_service, owner_id, query="a+b") == []


async def test_search_meta_and_owner_scope(document_service, search_corpus, owner_id):
    docs, total, meta = await document_service.search_documents(owner_id, DocumentSearchQuery(query="report"))
    assert total == 2
    assert all(d.owner_id == owner_id for d in docs)
    assert (meta.query, meta.results_found) == ("report", 2)
    assert meta.search_time_ms >= 0

    _, total, meta = await document_service.search_documents(owner_id, DocumentSearchQuery(query="nonexistent"))
    assert (total, meta.results_found) == (0, 0)


async def test_search_filters(document_service, search_corpus, owner_id):
    assert await search_names(document_service, owner_id, tags=["finance"], extension="pdf") == [
        "Quarterly Report.pdf"
    ]
    assert await search_names(document_service, owner_id, mime_type="application/pdf") == [
        "Project Proposal.pdf", "Quarterly Report.pdf"
    ]
    assert await search_names(document_service, owner_id, min_size=15, max_size=40) == [
        "Budget Analysis.xlsx", "Quarterly Report.pdf"
    ]
    assert await search_names(document_service, owner_id, name="proposal") == ["Project Proposal.pdf"]
    assert await search_names(document_service, owner_id, folder_id=str(search_corpus["work"].id)) == [
        "Quarterly Report.pdf"
    ]
    assert await search_names(document_service, owner_id, query="report", folder_id=None) == ["report-notes.txt"]

    await document_service.soft_delete_document(str(search_corpus["notes"].id), owner_id)
    assert await search_names(document_service, owner_id, query="report") == ["Quarterly Report.pdf"]


async def test_search_created_at_range(document_service, document_crud, search_corpus, owner_id):
    document_crud.records[search_corpus["budget"].id].created_at = datetime(2023, 1, 10)
    document_crud.records[search_corpus["proposal"].id].created_at = datetime(2023, 3, 1)

    assert await search_names(
        document_service, owner_id, date_from=datetime(2023, 1, 1), date_to=datetime(2023, 2, 1)
    ) == ["Budget Analysis.xlsx"]
    # aware bounds are compared in UTC
    assert await search_names(
        document_service, owner_id, date_from="2023-01-01T00:00:00+02:00", date_to="2023-03-01T02:00:00+02:00"
    ) == ["Budget Analysis.xlsx", "Project Proposal.pdf"]

    with pytest.raises(ValidationError) as exc:
        await document_service.search_documents(
            owner_id, DocumentSearchQuery(date_from=datetime(2024, 1, 1), date_to=datetime(2023, 1, 1))
        )
    assert exc.value.field == "date_from"


async def test_search_sorting_and_pagination(document_service, search_corpus, owner_id):
    docs, total, _ = await document_service.search_documents(
        owner_id, DocumentSearchQuery(sort_by="name", sort_order="asc", limit=2, page=2)
    )
    assert total == 4
    assert [d.name for d in docs] == ["Quarterly Report.pdf", "report-notes.txt"]

    docs, _, _ = await document_service.search_documents(
        owner_id, DocumentSearchQuery(query="report", sort_by="relevance")
    )
    assert [d.name for d in docs] == ["report-notes.txt", "Quarterly Report.pdf"]

    docs, _, _ = await document_service.search_documents(
        owner_id, DocumentSearchQuery(query="report", sort_by="relevance", sort_order="asc")
    )
    assert [d.name for d in docs] == ["Quarterly Report.pdf", "report-notes.txt"]

    docs, total, _ = await document_service.search_documents(
        owner_id, DocumentSearchQuery(sort_by="relevance", limit=10)
    )
    assert total == 4 and len(docs) == 4


async def test_relevance_prefers_name_hits(search_corpus):
    assert relevance(search_corpus["notes"], ["report"]) > relevance(search_corpus["report"], ["report"])
    assert relevance(search_corpus["budget"], ["finance"]) == 3
    assert relevance(search_corpus["proposal"], ["nothing"]) == 0


# Mutations

async def test_update_document(document_service, folder_service, make_document, owner_id):
    folder = await folder_service.create_folder(owner_id, "Target")
    doc = await make_document(folder_id=None)

    updated = await document_service.update_document(
        str(doc.id), owner_id, DocumentUpdate(name="Renamed", folder_id=str(folder.id), tags=["a", "a", " b "])
    )
    assert (updated.name, updated.folder_id, updated.tags) == ("Renamed", folder.id, ["a", "b"])

    back = await document_service.update_document(str(doc.id), owner_id, DocumentUpdate(folder_id=None))
    assert back.folder_id is None
    assert back.name == "Renamed"


async def test_move_document(document_service, folder_service, make_document, owner_id):
    folder = await folder_service.create_folder(owner_id, "Target")
    doc = await make_document()

    moved = await document_service.move_document(str(doc.id), owner_id, str(folder.id))
    assert moved.folder_id == folder.id

    with pytest.raises(NotFoundError):
        await document_service.move_document(str(doc.id), owner_id, "64b000000000000000000000")

    moved = await document_service.move_document(str(doc.id), owner_id, None)
    assert moved.folder_id is None


async def test_copy_document(document_service, folder_service, storage, quota, make_document, owner_id):
    folder = await folder_service.create_folder(owner_id, "Src")
    other = await folder_service.create_folder(owner_id, "Dst")
    doc = await make_document("plan.txt", data=b"12345", folder_id=str(folder.id), tags=["x"])

    copy = await document_service.copy_document(str(doc.id), owner_id, DocumentCopyRequest())
    assert copy.name == "Copy of plan.txt"
    assert copy.folder_id == folder.id
    assert copy.storage_key != doc.storage_key
    assert storage.objects[copy.storage_key]["data"] == b"12345"
    assert copy.tags == ["x"]
    assert await used_bytes(quota, owner_id) == 10

    moved_copy = await document_service.copy_document(
        str(doc.id), owner_id, DocumentCopyRequest(name="Plan v2", folder_id=str(other.id))
    )
    assert (moved_copy.name, moved_copy.folder_id) == ("Plan v2", other.id)

    root_copy = await document_service.copy_document(str(doc.id), owner_id, DocumentCopyRequest(folder_id=None))
    assert root_copy.folder_id is None


async def test_copy_document_checks_quota(document_service, quota, make_document, owner_id):
    doc = await make_document(data=b"x" * 6000)
    with pytest.raises(ValidationError) as exc:
        await document_service.copy_document(str(doc.id), owner_id, DocumentCopyRequest())
    assert exc.value.code == STORAGE_QUOTA_EXCEEDED


async def test_soft_delete_snapshots_folder(document_service, folder_service, document_crud, make_document, owner_id):
    docs = await folder_service.create_folder(owner_id, "Docs")
    doc = await make_document("report.txt", folder_id=str(docs.id))

    deleted = await document_service.soft_delete_document(str(doc.id), owner_id)

    assert deleted.is_deleted
    assert deleted.deleted_at is not None
    info = deleted.deleted_folder_info
    assert (info.folder_id, info.name, info.path, info.parent_id) == (docs.id, "Docs", "/Docs", None)


async def test_soft_delete_at_root_has_no_snapshot(document_service, make_document, owner_id):
    doc = await make_document()
    deleted = await document_service.soft_delete_document(str(doc.id), owner_id)
    assert deleted.deleted_folder_info is None

    with pytest.raises(NotFoundError):
        await document_service.soft_delete_document(str(doc.id), owner_id)


async def test_restore_into_live_folder(document_service, folder_service, make_document, owner_id):
    docs = await folder_service.create_folder(owner_id, "Docs")
    doc = await make_document(folder_id=str(docs.id))
    await document_service.soft_delete_document(str(doc.id), owner_id)

    restored, recreated = await document_service.restore_document(str(doc.id), owner_id)

    assert restored.folder_id == docs.id
    assert not restored.is_deleted
    assert restored.deleted_at is None
    assert restored.deleted_folder_info is None
    assert recreated is False


async def test_restore_requires_trashed_document(document_service, make_document, owner_id):
    doc = await make_document()
    with pytest.raises(NotFoundError):
        await document_service.restore_document(str(doc.id), owner_id)


async def test_restore_recreates_permanently_deleted_chain(
    document_service, folder_service, folder_crud, make_document, owner_id
):
    a = await folder_service.create_folder(owner_id, "A")
    b = await folder_service.create_folder(owner_id, "B", parent_id=str(a.id))
    doc = await make_document(folder_id=str(b.id))
    await document_service.soft_delete_document(str(doc.id), owner_id)
    await folder_service.permanent_delete_folder(str(b.id), owner_id)

    restored, recreated = await document_service.restore_document(str(doc.id), owner_id)

    assert recreated is True
    new_b = folder_crud.records[restored.folder_id]
    assert (new_b.path, new_b.depth, new_b.parent_id) == ("/A/B", 1, a.id)
    assert new_b.id != b.id
    # "/A" was reused, not duplicated
    assert [f.path for f in folder_crud.records.values()].count("/A") == 1


async def test_restore_recreates_whole_chain(document_service, folder_service, folder_crud, make_document, owner_id):
    a = await folder_service.create_folder(owner_id, "A")
    b = await folder_service.create_folder(owner_id, "B", parent_id=str(a.id))
    doc = await make_document(folder_id=str(b.id))
    await document_service.soft_delete_document(str(doc.id), owner_id)
    await folder_service.permanent_delete_folder(str(a.id), owner_id)

    restored, recreated = await document_service.restore_document(str(doc.id), owner_id)

    assert recreated is True
    assert sorted((f.path, f.depth) for f in folder_crud.records.values()) == [("/A", 0), ("/A/B", 1)]
    assert folder_crud.records[restored.folder_id].path == "/A/B"


async def test_restore_without_recreate_goes_to_root(document_service, folder_service, folder_crud, make_document, owner_id):
    a = await folder_service.create_folder(owner_id, "A")
    doc = await make_document(folder_id=str(a.id))
    await document_service.soft_delete_document(str(doc.id), owner_id)
    await folder_service.permanent_delete_folder(str(a.id), owner_id)

    restored, recreated = await document_service.restore_document(str(doc.id), owner_id, recreate_folder=False)

    assert restored.folder_id is None
    assert recreated is False
    assert folder_crud.records == {}


async def test_restore_recreation_failure_falls_back_to_root(
    document_service, folder_service, folder_crud, make_document, owner_id, monkeypatch
):
    a = await folder_service.create_folder(owner_id, "A")
    doc = await make_document(folder_id=str(a.id))
    await document_service.soft_delete_document(str(doc.id), owner_id)
    await folder_service.permanent_delete_folder(str(a.id), owner_id)

    async def broken_create(obj_in):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(folder_crud, "create", broken_create)

    restored, recreated = await document_service.restore_document(str(doc.id), owner_id)

    assert restored.folder_id is None
    assert not restored.is_deleted
    assert recreated is False


async def test_restore_reuses_live_folder_with_same_path(
    document_service, folder_service, folder_crud, make_document, owner_id
):
    a = await folder_service.create_folder(owner_id, "A")
    doc = await make_document(folder_id=str(a.id))
    await document_service.soft_delete_document(str(doc.id), owner_id)
    await folder_service.permanent_delete_folder(str(a.id), owner_id)
    replacement = await folder_service.create_folder(owner_id, "A")

    restored, recreated = await document_service.restore_document(str(doc.id), owner_id)

    assert restored.folder_id == replacement.id
    assert recreated is False
    assert len(folder_crud.records) == 1


async def test_restore_before_folder_restore_keeps_folder(
    document_service, folder_service, document_crud, make_document, owner_id
):
    docs = await folder_service.create_folder(owner_id, "Docs")
    report = await make_document("report.txt", folder_id=str(docs.id))
    await folder_service.soft_delete_folder(str(docs.id), owner_id)

    restored, recreated = await document_service.restore_document(str(report.id), owner_id)

    assert restored.folder_id == docs.id
    assert not restored.is_deleted
    assert recreated is False

    await folder_service.restore_folder(str(docs.id), owner_id)
    with_counts = await folder_service.get_folder_with_counts(str(docs.id), owner_id)
    assert with_counts.document_count == 1


async def test_restore_after_folder_purge_recreates_folder(
    document_service, folder_service, folder_crud, make_document, owner_id
):
    docs = await folder_service.create_folder(owner_id, "Docs")
    report = await make_document("report.txt", folder_id=str(docs.id))
    await folder_service.soft_delete_folder(str(docs.id), owner_id)
    await folder_service.permanent_delete_folder(str(docs.id), owner_id)

    restored, recreated = await document_service.restore_document(str(report.id), owner_id)

    assert recreated is True
    assert folder_crud.records[restored.folder_id].path == "/Docs"


async def test_permanent_delete_releases_storage_and_quota(document_service, storage, quota, make_document, owner_id):
    doc = await make_document(data=b"12345678")
    await document_service.soft_delete_document(str(doc.id), owner_id)

    await document_service.permanent_delete_document(str(doc.id), owner_id)

    assert doc.storage_key not in storage.objects
    assert await used_bytes(quota, owner_id) == 0
    with pytest.raises(NotFoundError):
        await document_service.permanent_delete_document(str(doc.id), owner_id)


async def test_quota_usage_never_negative(quota, owner_id):
    await quota.adjust_used(owner_id, 5)
    await quota.adjust_used(owner_id, -50)
    info = await quota.get_storage_info(owner_id)
    assert (info.used, info.limit, info.available, info.used_percentage) == (0, QUOTA_LIMIT, QUOTA_LIMIT, 0.0)


async def test_concurrent_first_requests_share_one_storage_record(quota, user_crud, owner_id, monkeypatch):
    async def miss(owner):
        return None

    # both callers miss the read and race to create the record
    monkeypatch.setattr(user_crud, "get_by_owner_id", miss)
    first, second = await asyncio.gather(quota.get_or_create(owner_id), quota.get_or_create(owner_id))

    assert first.id == second.id
    assert len(user_crud.records) == 1
    assert first.storage_limit == QUOTA_LIMIT


async def test_trash_and_empty_trash(document_service, document_crud, storage, quota, make_document, owner_id):
    kept = await make_document("kept.txt", data=b"k" * 3)
    first = await make_document("first.txt", data=b"f" * 5)
    second = await make_document("second.txt", data=b"s" * 7)
    await document_service.soft_delete_document(str(first.id), owner_id)
    await document_service.soft_delete_document(str(second.id), owner_id)
    document_crud.records[second.id].deleted_at = document_crud.records[first.id].deleted_at.replace(year=2999)

    items, total = await document_service.list_trash_documents(owner_id)
    assert total == 2
    assert [d.name for d in items] == ["second.txt", "first.txt"]

    deleted = await document_service.empty_trash(owner_id)

    assert deleted == 2
    assert list(document_crud.records) == [kept.id]
    assert list(storage.objects) == [kept.storage_key]
    assert await used_bytes(quota, owner_id) == 3
    assert await document_service.empty_trash(owner_id) == 0
