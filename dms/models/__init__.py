from dms.models.mixins import TimeMixin, SoftDeleteMixin
from dms.models.user import User
from dms.models.folder import Folder, MAX_FOLDER_DEPTH
from dms.models.document import Document, DeletedFolderInfo

# Export all models for easy import
__all__ = [
    "TimeMixin",
    "SoftDeleteMixin",
    "User",
    "Folder",
    "MAX_FOLDER_DEPTH",
    "Document",
    "DeletedFolderInfo",
]

# List of all document models for Beanie initialization
DOCUMENT_MODELS = [
    User,
    Folder,
    Document,
]
