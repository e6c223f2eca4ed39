# services/__init__.py
# ============================================================================
# ASTA EDUCATION BACKEND - SERVICES MODULE
# ============================================================================
# LMS content service and the service container
# ============================================================================

from services.content_service import (
    ContentService,
    content_type_for_mime,
)

from services.container import (
    ServiceContainer,
    build_container,
    build_memory_container,
)

__all__ = [
    # Content
    "ContentService",
    "content_type_for_mime",
    # Container
    "ServiceContainer",
    "build_container",
    "build_memory_container",
]
