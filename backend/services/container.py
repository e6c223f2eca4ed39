# services/container.py
# ============================================================================
# ASTA EDUCATION BACKEND - SERVICE CONTAINER
# ============================================================================
# Explicit handles for every collaborator. The HTTP layer receives one
# container; tests build one from in-memory implementations.
# ============================================================================

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from config import Settings, settings as default_settings
from pipeline.agents.notification_dispatcher import (
    IMailTransport,
    InMemoryMailTransport,
    NotificationDispatcher,
    SmtpMailTransport,
)
from pipeline.agents.payment_gateway import RazorpayGateway, SignatureVerifier
from pipeline.orchestrator import PaymentConfirmationOrchestrator, SubmissionPipeline
from services.content_service import ContentService
from storage.export_mirror import ExportMirror
from storage.media_host import IMediaHost, InMemoryMediaHost, S3MediaHost
from storage.record_store import InMemoryRecordStore, IRecordStore, PostgresRecordStore

logger = structlog.get_logger().bind(component="container")


@dataclass
class ServiceContainer:
    store: IRecordStore
    mirror: ExportMirror
    dispatcher: NotificationDispatcher
    verifier: SignatureVerifier
    gateway: RazorpayGateway
    media_host: IMediaHost
    orchestrator: PaymentConfirmationOrchestrator
    submissions: SubmissionPipeline
    content: ContentService

    async def initialize(self):
        await self.store.initialize()
        await self.mirror.initialize()
        logger.info("services_initialized", store=type(self.store).__name__, data_dir=str(self.mirror.data_dir))

    async def close(self):
        await self.gateway.close()
        await self.store.close()
        logger.info("services_closed")


def assemble(
    store: IRecordStore,
    mirror: ExportMirror,
    transport: IMailTransport,
    verifier: SignatureVerifier,
    gateway: RazorpayGateway,
    media_host: IMediaHost,
) -> ServiceContainer:
    """Wire the pipelines from already-built collaborators."""
    dispatcher = NotificationDispatcher(transport)
    return ServiceContainer(
        store=store,
        mirror=mirror,
        dispatcher=dispatcher,
        verifier=verifier,
        gateway=gateway,
        media_host=media_host,
        orchestrator=PaymentConfirmationOrchestrator(verifier, store, mirror, dispatcher),
        submissions=SubmissionPipeline(store, mirror, dispatcher),
        content=ContentService(store, media_host),
    )


def build_container(config: Optional[Settings] = None) -> ServiceContainer:
    """Production wiring from environment settings."""
    config = config or default_settings

    if config.STORE_BACKEND == "memory":
        logger.warning("memory_store_selected", reason="STORE_BACKEND=memory")
        store: IRecordStore = InMemoryRecordStore()
    else:
        store = PostgresRecordStore()

    return assemble(
        store=store,
        mirror=ExportMirror(config.DATA_DIR),
        transport=SmtpMailTransport(),
        verifier=SignatureVerifier(config.RAZORPAY_SECRET),
        gateway=RazorpayGateway(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET, config.RAZORPAY_API_URL),
        media_host=S3MediaHost(),
    )


def build_memory_container(
    data_dir: Path,
    secret: str = "test_secret",
    transport: Optional[IMailTransport] = None,
    gateway: Optional[RazorpayGateway] = None,
    store: Optional[IRecordStore] = None,
    media_host: Optional[IMediaHost] = None,
) -> ServiceContainer:
    """Fully in-memory wiring (spreadsheets still go to data_dir)."""
    return assemble(
        store=store or InMemoryRecordStore(),
        mirror=ExportMirror(data_dir),
        transport=transport or InMemoryMailTransport(),
        verifier=SignatureVerifier(secret),
        gateway=gateway or RazorpayGateway(key_id="rzp_test_key", key_secret="rzp_test_secret"),
        media_host=media_host or InMemoryMediaHost(),
    )
