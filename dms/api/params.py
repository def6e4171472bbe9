from typing import Any, Dict, Optional

# Query-string spellings that select the root level
ROOT_ALIASES = {"", "root", "null", "none"}


def folder_ref(value: Optional[str]) -> Optional[str]:
    """Folder id from a query parameter, None when it names the root"""
    if value is None or value.strip().lower() in ROOT_ALIASES:
        return None
    return value


def query_fields(folder_key: str, folder_value: Optional[str], **params: Any) -> Dict[str, Any]:
    """
    Keyword arguments for a list query model. Unset parameters are dropped so
    the model defaults apply; the folder filter is only set when it was sent.
    """
    fields = {key: value for key, value in params.items() if value is not None}
    if folder_value is not None:
        fields[folder_key] = folder_ref(folder_value)
    return fields
