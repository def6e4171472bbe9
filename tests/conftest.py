import pytest

from dms.services.document_service import DocumentService
from dms.services.folder_service import FolderService
from dms.services.quota_service import QuotaService
from tests.fakes import FakeDocumentCRUD, FakeFolderCRUD, FakeStorage, FakeUserCRUD

OWNER = "user_owner"
OTHER_OWNER = "user_other"
QUOTA_LIMIT = 10_000


@pytest.fixture
def owner_id() -> str:
    return OWNER


@pytest.fixture
def other_owner_id() -> str:
    return OTHER_OWNER


@pytest.fixture
def folder_crud() -> FakeFolderCRUD:
    return FakeFolderCRUD()


@pytest.fixture
def document_crud() -> FakeDocumentCRUD:
    return FakeDocumentCRUD()


@pytest.fixture
def user_crud() -> FakeUserCRUD:
    return FakeUserCRUD()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def quota(user_crud) -> QuotaService:
    return QuotaService(crud=user_crud, default_limit=QUOTA_LIMIT)


@pytest.fixture
def folder_service(folder_crud, document_crud) -> FolderService:
    return FolderService(crud=folder_crud, document_crud=document_crud)


@pytest.fixture
def document_service(document_crud, folder_service, storage, quota) -> DocumentService:
    return DocumentService(crud=document_crud, folder_service=folder_service, storage=storage, quota=quota)


@pytest.fixture
def make_document(document_service, storage, owner_id):
    """Upload a small text document, optionally into a folder"""

    async def _make(name: str = "report.txt", data: bytes = b"hello world", folder_id=None, owner=None, **kwargs):
        return await document_service.upload_direct(
            owner or owner_id, data, name, "text/plain", folder_id=folder_id, **kwargs
        )

    return _make
