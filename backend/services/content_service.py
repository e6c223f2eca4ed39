"""
Content Service - LMS Metadata
==============================
Learning-content registration on top of the record store and media host:
- register_upload: push bytes to the media host, then record the metadata
- register_content: record metadata for an asset the client already uploaded
- delete_content: best-effort remote delete, then drop the row

pip install structlog
"""

from typing import Any, Dict, List, Optional

import structlog

from pipeline.errors import MediaHostError, NotFoundError, ValidationError
from schemas.records import ContentCreate, ContentMetadata, ContentType
from schemas.requests import ContentCreateRequest
from storage.media_host import IMediaHost
from storage.record_store import IRecordStore

logger = structlog.get_logger().bind(component="content_service")


def content_type_for_mime(mime: Optional[str]) -> ContentType:
    mime = (mime or "").lower()
    if mime.startswith("image/"):
        return ContentType.IMAGE
    if mime == "application/pdf":
        return ContentType.PDF
    if mime.startswith("video/"):
        return ContentType.VIDEO
    if "msword" in mime or "wordprocessingml" in mime:
        return ContentType.WORD
    if "ms-powerpoint" in mime or "presentationml" in mime:
        return ContentType.PPT
    return ContentType.OTHER


class ContentService:

    def __init__(self, store: IRecordStore, media_host: IMediaHost):
        self.store = store
        self.media_host = media_host

    async def list_content(self) -> List[ContentMetadata]:
        return await self.store.list_content()

    async def register_upload(
        self,
        data: bytes,
        filename: str,
        mime_type: Optional[str],
        title: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        creator_email: Optional[str] = None,
        external_auth_id: Optional[str] = None,
    ) -> ContentMetadata:
        if not data:
            raise ValidationError("No file uploaded")

        asset = await self.media_host.upload(data, filename, mime_type)
        content = ContentCreate(
            title=(title or "").strip() or filename,
            description=description,
            content_type=content_type_for_mime(mime_type),
            url=asset.url,
            storage_key=asset.storage_key,
            file_size=asset.size,
            file_name=filename,
            created_by=created_by,
            creator_email=creator_email,
            external_auth_id=external_auth_id,
        )

        try:
            created = await self.store.create_content(content)
        except Exception:
            # Orphaned upload otherwise
            try:
                await self.media_host.delete(asset.storage_key)
            except MediaHostError as cleanup_error:
                logger.warning("orphan_cleanup_failed", key=asset.storage_key, error=str(cleanup_error))
            raise

        logger.info("content_uploaded", id=created.id, content_type=created.content_type.value, size=asset.size)
        return created

    async def register_content(self, request: ContentCreateRequest) -> ContentMetadata:
        if request.missing(*request.REQUIRED):
            raise ValidationError("Title and url are required")

        content = ContentCreate(
            title=request.title,
            description=request.description,
            content_type=content_type_for_mime(request.mime_type),
            url=request.url,
            storage_key=request.storage_key,
            file_size=request.file_size,
            file_name=request.file_name,
            created_by=request.created_by,
            creator_email=request.creator_email,
            external_auth_id=request.external_auth_id,
        )
        created = await self.store.create_content(content)
        logger.info("content_registered", id=created.id, content_type=created.content_type.value)
        return created

    async def delete_content(self, content_id: int) -> Dict[str, Any]:
        existing = await self.store.get_content(content_id)
        if existing is None:
            raise NotFoundError("Content not found")

        remote_deleted = False
        remote_error = None
        if existing.storage_key:
            try:
                await self.media_host.delete(existing.storage_key)
                remote_deleted = True
            except MediaHostError as e:
                remote_error = e.message
                logger.warning("remote_delete_failed", id=content_id, key=existing.storage_key, error=e.message)

        await self.store.delete_content(content_id)
        logger.info("content_deleted", id=content_id, remote_deleted=remote_deleted)

        result = {
            "success": True,
            "message": "Content deleted successfully",
            "remote_deleted": remote_deleted,
        }
        if remote_error:
            result["remote_error"] = remote_error
        return result
