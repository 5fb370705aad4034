"""
ESSENCE Voice Legacy Service

Records speech samples for a loved one's profile, clones the voice through
an external provider and renders new messages in that voice.

Modules:
- app: FastAPI application factory
- database: SQLAlchemy models and repositories
- models: Pydantic schemas
- services: slot bookkeeping, voice lifecycle, synthesis, provider gateway

Usage:
    # Run the API server
    python -m essence.main

    # Or with uvicorn directly
    uvicorn essence.main:app --host 0.0.0.0 --port 8000
"""

__version__ = "1.0.0"

from essence.core.config import get_settings, Settings
from essence.models import (
    VoiceModelStatus,
    MessageCategory,
)

__all__ = [
    "get_settings",
    "Settings",
    "VoiceModelStatus",
    "MessageCategory",
]
