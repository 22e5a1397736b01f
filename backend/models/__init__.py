"""
Pydantic models for Codezoo.

All data shapes defined here. No imports from db, repos, or routes.
"""

from backend.models.auth import LoginRequest, LogoutResponse, RegisterRequest
from backend.models.pen import (
    CompilePenRequest,
    CompileResultResponse,
    CreatePenResponse,
    EditorRevisionPayload,
    Pen,
    PenEditorPayload,
    PenRevision,
    PenSummary,
    Preprocessors,
    SavePenRevisionRequest,
)
from backend.models.user import User, UserPublic

__all__ = [
    # User models
    "User",
    "UserPublic",
    # Auth models
    "RegisterRequest",
    "LoginRequest",
    "LogoutResponse",
    # Pen models
    "Pen",
    "PenRevision",
    "PenSummary",
    "Preprocessors",
    "EditorRevisionPayload",
    "PenEditorPayload",
    "CreatePenResponse",
    "SavePenRevisionRequest",
    # Compile models
    "CompilePenRequest",
    "CompileResultResponse",
]
