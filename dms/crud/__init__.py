from dms.crud.base import BaseCRUD, parse_filter_id, parse_object_id
from dms.crud.folder import FolderCRUD
from dms.crud.document import DocumentCRUD
from dms.crud.user import UserCRUD

__all__ = ["BaseCRUD", "parse_filter_id", "parse_object_id", "FolderCRUD", "DocumentCRUD", "UserCRUD"]
