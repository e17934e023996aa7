"""Service layer exports."""

from .assistant_actions import AssistantActionService
from .face_match import FaceMatchEngine
from .face_store import FaceEnrollmentStore
from .session_cipher import SessionCipherService
from .token_lifecycle import (
    AuthorizedCall,
    RefreshedCallError,
    TokenLifecycleManager,
    is_expired,
)

__all__ = [
    "AssistantActionService",
    "AuthorizedCall",
    "FaceEnrollmentStore",
    "FaceMatchEngine",
    "RefreshedCallError",
    "SessionCipherService",
    "TokenLifecycleManager",
    "is_expired",
]
