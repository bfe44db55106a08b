"""Services : session, écouteur de rappel, coffre à jeton et envoi."""

from exemeta.services.api_client import ApiClient, ApiClientError, ApiResponse
from exemeta.services.auth_session import AuthSessionManager, LoginOutcome, LoginResult
from exemeta.services.callback_server import CallbackListener, await_callback, extract_token
from exemeta.services.metadata import MetadataError
from exemeta.services.ports import NoAvailablePortError, allocate_port
from exemeta.services.token_storage import TokenStorage, TokenStoreError
from exemeta.services.uploader import BatchUploader, UploadError, UploadErrorKind, UploadResult
from exemeta.state import BatchLockedError

__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiResponse",
    "AuthSessionManager",
    "BatchLockedError",
    "BatchUploader",
    "CallbackListener",
    "LoginOutcome",
    "LoginResult",
    "MetadataError",
    "NoAvailablePortError",
    "TokenStorage",
    "TokenStoreError",
    "UploadError",
    "UploadErrorKind",
    "UploadResult",
    "allocate_port",
    "await_callback",
    "extract_token",
]
