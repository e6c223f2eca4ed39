"""
Payment Confirmation Orchestrator
=================================
Turns a verified Razorpay checkout into a committed student registration.
Each request runs its own state machine:

    RECEIVED -> VERIFYING -> REJECTED                       (no writes)
    VERIFYING -> COMMITTING -> MIRRORING -> NOTIFYING -> CONFIRMED
    any step after VERIFYING -> ROLLED_BACK                 (on error)

The insert, re-select, spreadsheet append and email all happen while the
database transaction is open; the transaction commits only after the email
is accepted, so a mirror or mail failure leaves no student row. Mirror rows
and emails produced before a failed commit are not undone.

SubmissionPipeline runs the same steps, minus verification, for the contact
and about-page forms.

pip install structlog
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from pipeline.agents.notification_dispatcher import NotificationDispatcher, NotificationKind
from pipeline.agents.payment_gateway import SignatureVerifier
from pipeline.errors import PersistenceError, PipelineError, ValidationError, classify
from schemas.records import (
    AboutInquiryCreate,
    ContactMessageCreate,
    EntityKind,
    PaymentStatus,
    StudentCreate,
)
from schemas.requests import AboutSubmission, ContactSubmission, VerifyPaymentRequest
from storage.export_mirror import ExportMirror
from storage.record_store import IRecordStore, IRecordTransaction

logger = structlog.get_logger().bind(component="orchestrator")


# =============================================================================
# STATES AND RESULTS
# =============================================================================

class PipelineState(str, Enum):
    RECEIVED = "received"
    VERIFYING = "verifying"
    REJECTED = "rejected"
    COMMITTING = "committing"
    MIRRORING = "mirroring"
    NOTIFYING = "notifying"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


PAYMENT_SUCCESS = {"status": "success", "message": "Payment successful and records updated"}
PAYMENT_INVALID_SIGNATURE = {"status": "failure", "message": "Invalid signature"}
PAYMENT_MISSING_STUDENT = {"status": "failure", "message": "Missing student information"}
PAYMENT_ERROR = {"status": "error", "message": "Post-payment processing error"}

SUBMISSION_SUCCESS = {"success": True, "message": "Your message has been sent successfully!"}
SUBMISSION_MISSING_FIELDS = {"error": "Name, email, subject, and message are required"}
SUBMISSION_ERROR = {"error": "Error processing your message"}


@dataclass
class PipelineResult:
    state: PipelineState
    status_code: int
    body: Dict[str, Any]
    correlation_id: str
    record: Optional[Any] = None
    error: Optional[BaseException] = None
    history: List[PipelineState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class _Run:
    """State tracker for one request; every transition is logged."""

    def __init__(self, pipeline: str, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.state = PipelineState.RECEIVED
        self.history = [self.state]
        self.log = logger.bind(pipeline=pipeline, correlation_id=self.correlation_id)

    def advance(self, state: PipelineState, **context):
        self.log.info("state_transition", from_state=self.state.value, to_state=state.value, **context)
        self.state = state
        self.history.append(state)

    def result(self, status_code: int, body: Dict[str, Any], record=None, error=None) -> PipelineResult:
        return PipelineResult(
            state=self.state,
            status_code=status_code,
            body=dict(body),
            correlation_id=self.correlation_id,
            record=record,
            error=error,
            history=list(self.history),
        )


# =============================================================================
# SHARED TRANSACTION STEPS
# =============================================================================

class _TransactionalPipeline:
    """insert -> re-select -> mirror -> notify -> commit, rollback on any error."""

    def __init__(
        self,
        store: IRecordStore,
        mirror: ExportMirror,
        dispatcher: NotificationDispatcher,
    ):
        self.store = store
        self.mirror = mirror
        self.dispatcher = dispatcher

    async def _commit_with_side_effects(
        self,
        run: _Run,
        insert: Callable[[IRecordTransaction], Awaitable[int]],
        fetch: Callable[[IRecordTransaction, int], Awaitable[Any]],
        entity: EntityKind,
        notification: NotificationKind,
    ):
        """Return the committed record. Raises after rolling back."""
        run.advance(PipelineState.COMMITTING)
        tx = await self.store.begin()
        committed = False
        try:
            record_id = await insert(tx)
            record = await fetch(tx, record_id)
            if record is None:
                raise PersistenceError(f"{entity.value} row {record_id} not found after insert")
            run.log.info("record_inserted", entity=entity.value, id=record_id)

            run.advance(PipelineState.MIRRORING)
            await self.mirror.append_row(entity, record)

            run.advance(PipelineState.NOTIFYING)
            await self.dispatcher.send(notification, record, correlation_id=run.correlation_id)

            await tx.commit()
            committed = True
            return record
        finally:
            if not committed:
                try:
                    await tx.rollback()
                except Exception as e:
                    run.log.error("rollback_failed", error=str(e))

    def _rolled_back(self, run: _Run, error: Exception, body: Dict[str, Any]) -> PipelineResult:
        status_code, kind = classify(error)
        run.log.error(
            "pipeline_failed",
            failed_state=run.state.value,
            error_kind=kind,
            classified_status=status_code,
            error=str(error),
        )
        run.advance(PipelineState.ROLLED_BACK)
        return run.result(500, body, error=error)


# =============================================================================
# PAYMENT CONFIRMATION
# =============================================================================

class PaymentConfirmationOrchestrator(_TransactionalPipeline):
    """
    Example:
        orchestrator = PaymentConfirmationOrchestrator(verifier, store, mirror, dispatcher)
        result = await orchestrator.confirm(VerifyPaymentRequest(**payload))
        return JSONResponse(result.body, status_code=result.status_code)
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        store: IRecordStore,
        mirror: ExportMirror,
        dispatcher: NotificationDispatcher,
    ):
        super().__init__(store, mirror, dispatcher)
        self.verifier = verifier

    @staticmethod
    def student_from(request: VerifyPaymentRequest) -> StudentCreate:
        info = request.student_info
        if info is None or info.missing(*info.REQUIRED) or info.amount <= 0:
            raise ValidationError("Missing student information")
        return StudentCreate(
            name=info.name,
            email=info.email,
            phone=info.phone,
            course=info.course,
            amount=info.amount,
            payment_id=request.razorpay_payment_id,
            payment_status=PaymentStatus.SUCCESSFUL,
        )

    async def confirm(
        self,
        request: VerifyPaymentRequest,
        correlation_id: Optional[str] = None,
    ) -> PipelineResult:
        run = _Run("payment_confirmation", correlation_id)
        run.advance(PipelineState.VERIFYING, order_id=request.razorpay_order_id)

        if not self.verifier.verify(
            request.razorpay_order_id,
            request.razorpay_payment_id,
            request.razorpay_signature,
        ):
            run.advance(PipelineState.REJECTED, reason="invalid_signature")
            return run.result(400, PAYMENT_INVALID_SIGNATURE)

        try:
            student = self.student_from(request)
        except ValidationError as e:
            run.advance(PipelineState.REJECTED, reason="missing_student_info")
            return run.result(400, PAYMENT_MISSING_STUDENT, error=e)

        try:
            record = await self._commit_with_side_effects(
                run,
                insert=lambda tx: tx.insert_student(student),
                fetch=lambda tx, record_id: tx.get_student(record_id),
                entity=EntityKind.STUDENTS,
                notification=NotificationKind.PAYMENT_CONFIRMATION,
            )
        except Exception as e:
            return self._rolled_back(run, e, PAYMENT_ERROR)

        run.advance(PipelineState.CONFIRMED, student_id=record.id, payment_id=record.payment_id)
        return run.result(200, PAYMENT_SUCCESS, record=record)


# =============================================================================
# CONTACT / ABOUT SUBMISSIONS
# =============================================================================

class SubmissionPipeline(_TransactionalPipeline):
    """Contact form and about-page inquiry submissions."""

    async def submit_contact(
        self,
        request: ContactSubmission,
        correlation_id: Optional[str] = None,
    ) -> PipelineResult:
        run = _Run("contact_submission", correlation_id)
        if request.missing(*request.REQUIRED):
            run.advance(PipelineState.REJECTED, missing=request.missing(*request.REQUIRED))
            return run.result(400, SUBMISSION_MISSING_FIELDS)

        message = ContactMessageCreate(
            name=request.name,
            email=request.email,
            phone=request.phone or "",
            subject=request.subject,
            message=request.message,
        )
        try:
            record = await self._commit_with_side_effects(
                run,
                insert=lambda tx: tx.insert_contact_message(message),
                fetch=lambda tx, record_id: tx.get_contact_message(record_id),
                entity=EntityKind.CONTACT_MESSAGES,
                notification=NotificationKind.CONTACT_ALERT,
            )
        except Exception as e:
            return self._rolled_back(run, e, SUBMISSION_ERROR)

        run.advance(PipelineState.CONFIRMED, message_id=record.id)
        return run.result(200, SUBMISSION_SUCCESS, record=record)

    async def submit_about(
        self,
        request: AboutSubmission,
        correlation_id: Optional[str] = None,
    ) -> PipelineResult:
        run = _Run("about_submission", correlation_id)
        if request.missing(*request.REQUIRED):
            run.advance(PipelineState.REJECTED, missing=request.missing(*request.REQUIRED))
            return run.result(400, SUBMISSION_MISSING_FIELDS)

        inquiry = AboutInquiryCreate(
            name=request.name,
            email=request.email,
            subject=request.subject,
            message=request.message,
        )
        try:
            record = await self._commit_with_side_effects(
                run,
                insert=lambda tx: tx.insert_about_inquiry(inquiry),
                fetch=lambda tx, record_id: tx.get_about_inquiry(record_id),
                entity=EntityKind.ABOUT_INQUIRIES,
                notification=NotificationKind.ABOUT_ALERT,
            )
        except Exception as e:
            return self._rolled_back(run, e, SUBMISSION_ERROR)

        run.advance(PipelineState.CONFIRMED, inquiry_id=record.id)
        return run.result(200, SUBMISSION_SUCCESS, record=record)
