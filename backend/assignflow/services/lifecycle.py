# services/lifecycle.py
"""
Assignment lifecycle.

Every transition follows the same shape: take the per-assignment lock,
re-read the document, check actor and status, commit the write, then run
the follow-up work (ledger, chat, notifications, socket pushes) through
SideEffects. A follow-up failure is logged and reported in the result but
never undoes or fails the committed write.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from fastapi import UploadFile

from assignflow.core.effects import SideEffects
from assignflow.core.errors import Forbidden, InvalidTransition, NotAuthorized, NotFound, ValidationFailed
from assignflow.core.events import EventSink
from assignflow.core.locks import KeyedLock, assignment_locks
from assignflow.core.storage import save_upload, save_uploads
from assignflow.models.assignment_model import (
    ASSIGNABLE_STATUSES,
    OVERRIDE_STATUSES,
    Assignment,
    can_transition,
)
from assignflow.models.user_model import User
from assignflow.services.directory import admin_ids, get_user, load_users, update_user
from assignflow.services.presenter import format_assignment
from assignflow.utils.firebase import firestore_run, get_doc, stream_docs
from assignflow.utils.rounding import round_half_up

logger = logging.getLogger("assignflow.lifecycle")

# Statuses an admin still has to act on before a writer is attached
NEW_SUBMISSION_STATUSES = {"New", "Price Set", "Price Accepted", "Payment Proof Submitted", "Paid"}


@dataclass
class TransitionResult:
    assignment: Assignment
    message: str
    effects: SideEffects = field(default_factory=SideEffects)
    people: Dict[str, User] = field(default_factory=dict)


class AssignmentLifecycle:
    def __init__(self, db, notifier, events: EventSink, ledger, chats, locks: KeyedLock = assignment_locks):
        self.db = db
        self.notifier = notifier
        self.events = events
        self.ledger = ledger
        self.chats = chats
        self.locks = locks

    @property
    def assignments(self):
        return self.db.collection("assignments")

    # ------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------
    async def load(self, assignment_id: str) -> Assignment:
        data = await get_doc(self.assignments.document(assignment_id))
        if not data:
            raise NotFound("Assignment")
        return Assignment(**data)

    async def _commit(self, assignment: Assignment, fields: dict) -> Assignment:
        fields["updated_at"] = datetime.now(timezone.utc)
        await firestore_run(self.assignments.document(assignment.id).update, fields)
        return Assignment(**{**assignment.model_dump(by_alias=True), **fields})

    @staticmethod
    def _guard(assignment: Assignment, target: str, allowed_from: Iterable[str], message: str):
        if assignment.status not in allowed_from or not can_transition(assignment.status, target):
            raise InvalidTransition(assignment.status, target, message)

    @staticmethod
    def _require_owner(assignment: Assignment, user: User, action: str):
        if assignment.student_id != user.id:
            raise NotAuthorized(f"Not authorized to {action} for this assignment")

    @staticmethod
    def _require_assignee(assignment: Assignment, user: User, action: str):
        if not assignment.writer_id or assignment.writer_id != user.id:
            raise NotAuthorized(f"Not authorized to {action} for this assignment")

    async def _people(self, assignment: Assignment) -> Dict[str, User]:
        return await load_users(self.db, [assignment.student_id, assignment.writer_id])

    async def _admins(self, effects: SideEffects) -> List[str]:
        result = await effects.run("load admins", admin_ids(self.db))
        return result.value if result.ok else []

    async def _push(self, user_id: str, event: str, assignment: Assignment, role: str, people: Dict[str, User]) -> int:
        return await self.events.notify(user_id, event, format_assignment(assignment, role, people))

    async def _broadcast(self, effects: SideEffects, assignment: Assignment, people: Dict[str, User], event: str = "assignmentUpdated"):
        """Role-projected push to the client, the writer and every admin."""
        recipients = [(assignment.student_id, "client")]
        if assignment.writer_id:
            recipients.append((assignment.writer_id, "writer"))
        recipients += [(admin_id, "admin") for admin_id in await self._admins(effects)]

        for user_id, role in recipients:
            await effects.run(f"push {event} to {user_id}", self._push(user_id, event, assignment, role, people))
            await effects.run(f"refresh {user_id}", self.events.notify(user_id, "refreshAssignments", {"assignment_id": assignment.id}))

    async def _finish(self, assignment: Assignment, message: str, effects: SideEffects) -> TransitionResult:
        loaded = await effects.run("load people", self._people(assignment))
        people = loaded.value if loaded.ok else {}
        await self._broadcast(effects, assignment, people)
        return TransitionResult(assignment=assignment, message=message, effects=effects, people=people)

    def _effects(self, assignment_id: str, label: str) -> SideEffects:
        return SideEffects(context=f"{label} on assignment {assignment_id}")

    # ------------------------------------------------------------
    # Submission & pricing
    # ------------------------------------------------------------
    async def create_submission(
        self,
        client: User,
        title: str,
        files: List[UploadFile],
        subject: str = "",
        description: str = "",
        deadline: Optional[datetime] = None,
    ) -> TransitionResult:
        if not title or not title.strip():
            raise ValidationFailed("Title is required")
        if not [f for f in (files or []) if f is not None and f.filename]:
            raise ValidationFailed("Please attach at least one file")

        attachments = await save_uploads(files, "attachments")
        now = datetime.now(timezone.utc)
        assignment = Assignment(
            _id=uuid4().hex,
            title=title.strip(),
            subject=subject or "",
            description=description or "",
            student_id=client.id,
            deadline=deadline,
            status="New",
            attachments=attachments,
            created_at=now,
            updated_at=now,
        )
        await firestore_run(self.assignments.document(assignment.id).set, assignment.model_dump(by_alias=True))
        logger.info(f"Assignment {assignment.id} submitted by {client.id}")

        effects = self._effects(assignment.id, "create")
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'New submission "{assignment.title}" received from {client.name or "a client"}. Please review and set price.',
                "assignment",
                "/new-submissions",
            ),
        )
        for admin_id in await self._admins(effects):
            await effects.run(f"refresh new submissions {admin_id}", self.events.notify(admin_id, "refreshNewSubmissions", {"assignment_id": assignment.id}))
            await effects.run(f"push created to {admin_id}", self._push(admin_id, "assignmentCreated", assignment, "admin", {client.id: client}))

        return TransitionResult(assignment=assignment, message="Assignment submitted successfully", effects=effects, people={client.id: client})

    async def set_client_price(self, assignment_id: str, admin: User, client_price: float) -> TransitionResult:
        if client_price is None or client_price <= 0:
            raise ValidationFailed("Price must be greater than 0")

        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._guard(assignment, "Price Set", {"New", "Price Rejected"}, "Price can only be set for new or rejected assignments")
            assignment = await self._commit(assignment, {
                "client_price": client_price,
                "client_accepted_price": False,
                "status": "Price Set",
            })

        effects = self._effects(assignment_id, "set price")
        await effects.run(
            "notify client",
            self.notifier.create(
                assignment.student_id,
                f'Price set for your assignment "{assignment.title}": ${client_price}. Please accept or reject.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Price set successfully", effects)

    async def accept_price(self, assignment_id: str, client: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_owner(assignment, client, "accept the price")
            self._guard(assignment, "Price Accepted", {"Price Set"}, "No price is awaiting your decision")
            assignment = await self._commit(assignment, {"client_accepted_price": True, "status": "Price Accepted"})

        effects = self._effects(assignment_id, "accept price")
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'Client accepted the price for "{assignment.title}". Awaiting payment.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Price accepted", effects)

    async def reject_price(self, assignment_id: str, client: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_owner(assignment, client, "reject the price")
            self._guard(assignment, "Price Rejected", {"Price Set"}, "No price is awaiting your decision")
            assignment = await self._commit(assignment, {"client_accepted_price": False, "status": "Price Rejected"})

        effects = self._effects(assignment_id, "reject price")
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'Client rejected the price for "{assignment.title}". Please review and set a new price.',
                "assignment",
                "/new-submissions",
            ),
        )
        return await self._finish(assignment, "Price rejected", effects)

    # ------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------
    async def upload_payment_proof(
        self,
        assignment_id: str,
        client: User,
        proof: Optional[UploadFile],
        payment_method: Optional[str] = None,
    ) -> TransitionResult:
        payment_method = payment_method or "Bank"
        if payment_method not in ("Bank", "Card"):
            raise ValidationFailed("Payment method must be Bank or Card")

        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_owner(assignment, client, "upload payment proof")
            self._guard(assignment, "Payment Proof Submitted", {"Price Accepted"}, "Price must be accepted before uploading payment proof")
            if proof is None or not proof.filename:
                raise ValidationFailed("Payment proof file is required")

            stored = await save_upload(proof, "paymentProof")
            assignment = await self._commit(assignment, {
                "payment_proof": stored.model_dump(),
                "payment_method": payment_method,
                "payment_status": "Pending",
                "status": "Payment Proof Submitted",
            })

        effects = self._effects(assignment_id, "payment proof")
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'Payment proof submitted for "{assignment.title}". Please verify.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Payment proof uploaded successfully", effects)

    async def confirm_payment(self, assignment_id: str, admin: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._guard(assignment, "Paid", {"Payment Proof Submitted"}, "No payment proof is awaiting confirmation")
            assignment = await self._commit(assignment, {"payment_status": "Paid", "status": "Paid"})

        effects = self._effects(assignment_id, "confirm payment")
        await effects.run(
            "notify client",
            self.notifier.create(
                assignment.student_id,
                f'Payment confirmed for "{assignment.title}". A writer will be assigned shortly.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        if assignment.client_price and assignment.writer_price:
            await effects.run("admin paysheet", self.ledger.upsert_admin_entry(assignment))
        return await self._finish(assignment, "Payment confirmed", effects)

    async def start_card_payment(self, assignment_id: str, client: User, order_id: str) -> Assignment:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_owner(assignment, client, "pay")
            if assignment.status != "Price Accepted":
                raise ValidationFailed("Assignment must have accepted price before payment")
            if not assignment.client_price or assignment.client_price <= 0:
                raise ValidationFailed("Invalid assignment price")
            return await self._commit(assignment, {
                "payment_method": "Card",
                "payment_status": "Pending",
                "payment_reference_id": order_id,
            })

    async def settle_card_payment(self, assignment_id: str, order_id: str, success: bool) -> TransitionResult:
        """Applies a verified gateway callback. A success confirms payment without admin review."""
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            if success:
                fields = {"payment_method": "Card", "payment_status": "Paid", "payment_reference_id": order_id}
                if assignment.status in {"Price Accepted", "Payment Pending", "Payment Proof Submitted"} and can_transition(assignment.status, "Paid"):
                    fields["status"] = "Paid"
                else:
                    logger.warning(f"Card payment for assignment {assignment_id} arrived in status {assignment.status}; status left as is")
            else:
                fields = {"payment_status": "Failed", "payment_reference_id": order_id}
            assignment = await self._commit(assignment, fields)

        effects = self._effects(assignment_id, "card payment")
        if success:
            await effects.run(
                "notify admins",
                self.notifier.notify_admins(
                    f'Card payment received for "{assignment.title}". Ready for writer assignment.',
                    "assignment",
                    f"/assignments/{assignment.id}",
                ),
            )
            await effects.run(
                "notify client",
                self.notifier.create(
                    assignment.student_id,
                    f'Payment confirmed for "{assignment.title}". A writer will be assigned shortly.',
                    "assignment",
                    f"/assignments/{assignment.id}",
                ),
            )
            message = "Payment completed"
        else:
            await effects.run(
                "notify client",
                self.notifier.create(
                    assignment.student_id,
                    f'Your card payment for "{assignment.title}" was not completed. Please try again.',
                    "assignment",
                    f"/assignments/{assignment.id}",
                ),
            )
            message = "Payment failed"
        return await self._finish(assignment, message, effects)

    # ------------------------------------------------------------
    # Fulfilment
    # ------------------------------------------------------------
    async def assign_writer(
        self,
        assignment_id: str,
        admin: User,
        writer_id: str,
        writer_price: float,
        client_price: Optional[float] = None,
    ) -> TransitionResult:
        if not writer_id:
            raise ValidationFailed("Writer is required")
        if writer_price is None or writer_price <= 0:
            raise ValidationFailed("Writer price must be greater than 0")
        if client_price is not None and client_price <= 0:
            raise ValidationFailed("Client price must be greater than 0")

        writer = await get_user(self.db, writer_id)
        if writer is None or writer.role != "writer":
            raise NotFound("Writer")

        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            # Paid after rating is the end of the line, not paid-awaiting-writer
            if assignment.status == "Paid" and (assignment.completed_at or assignment.rating is not None):
                raise InvalidTransition(assignment.status, "In Progress", "Finished assignments cannot be reassigned")
            if assignment.status in ASSIGNABLE_STATUSES:
                pass
            elif client_price is not None and assignment.status in OVERRIDE_STATUSES:
                logger.info(f"Admin {admin.id} assigning {assignment_id} from {assignment.status} with a manual client price")
            else:
                raise InvalidTransition(
                    assignment.status,
                    "In Progress",
                    "Client must accept the price or pay before a writer is assigned, unless a client price is supplied",
                )

            fields = {"writer_id": writer.id, "writer_price": writer_price, "status": "In Progress"}
            if client_price is not None:
                fields["client_price"] = client_price
                fields["client_accepted_price"] = True
            assignment = await self._commit(assignment, fields)

        effects = self._effects(assignment_id, "assign writer")
        await effects.run("writer paysheet", self.ledger.upsert_writer_entry(assignment, status="Due"))
        await effects.run("admin paysheet", self.ledger.upsert_admin_entry(assignment))
        await effects.run("conversation", self.chats.ensure_conversation(assignment.id, [assignment.student_id, writer.id]))
        await effects.run(
            "notify writer",
            self.notifier.create(
                writer.id,
                f'You have been assigned a new assignment: "{assignment.title}".',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        await effects.run(
            "notify client",
            self.notifier.create(
                assignment.student_id,
                f'A writer has been assigned to your assignment "{assignment.title}".',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        await effects.run("refresh writer paysheets", self.events.notify(writer.id, "refreshPaysheets", {"assignment_id": assignment.id}))
        return await self._finish(assignment, "Writer assigned successfully", effects)

    async def upload_completed_work(self, assignment_id: str, writer: User, files: List[UploadFile]) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_assignee(assignment, writer, "upload work")
            if not [f for f in (files or []) if f is not None and f.filename]:
                raise ValidationFailed("Please upload at least one file")
            self._guard(assignment, "Completed", {"In Progress", "Revision"}, "Assignment is not in progress")

            stored = await save_uploads(files, "completedFiles")
            now = datetime.now(timezone.utc)
            assignment = await self._commit(assignment, {
                "completed_files": [f.model_dump() for f in assignment.completed_files + stored],
                "progress": 100,
                "completed_at": now,
                "status": "Completed",
            })

        effects = self._effects(assignment_id, "complete")
        await effects.run("writer paysheet", self.ledger.upsert_writer_entry(assignment, status="Pending"))
        await effects.run(
            "notify client",
            self.notifier.create(
                assignment.student_id,
                f'Your assignment "{assignment.title}" has been completed by the writer.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'Writer {writer.name or writer.id} completed "{assignment.title}". Please review and approve.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Work uploaded successfully", effects)

    async def approve_work(self, assignment_id: str, admin: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._guard(assignment, "Admin Approved", {"Completed"}, "Only completed assignments can be approved")
            assignment = await self._commit(assignment, {"admin_approved": True, "status": "Admin Approved"})

        effects = self._effects(assignment_id, "approve")
        await effects.run("writer paysheet due", self.ledger.set_entry_status(assignment, "Due"))
        await effects.run("admin paysheet", self.ledger.upsert_admin_entry(assignment))
        await effects.run(
            "notify client",
            self.notifier.create(
                assignment.student_id,
                f'Your assignment "{assignment.title}" has been approved and is ready for download.',
                "assignment",
                f"/assignments/{assignment.id}",
            ),
        )
        if assignment.writer_id:
            await effects.run(
                "notify writer",
                self.notifier.create(
                    assignment.writer_id,
                    f'Your work on "{assignment.title}" has been approved by admin.',
                    "assignment",
                    f"/assignments/{assignment.id}",
                ),
            )
            await effects.run("refresh writer paysheets", self.events.notify(assignment.writer_id, "refreshPaysheets", {"assignment_id": assignment.id}))
        return await self._finish(assignment, "Assignment approved", effects)

    async def rate(self, assignment_id: str, client: User, rating: int, feedback: Optional[str] = None) -> TransitionResult:
        if rating is None or not 1 <= rating <= 5:
            raise ValidationFailed("Rating must be between 1 and 5")

        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_owner(assignment, client, "rate")
            if assignment.rating is not None:
                raise ValidationFailed("Assignment has already been rated")
            self._guard(assignment, "Paid", {"Admin Approved", "Completed"}, "Assignment must be completed before rating")
            assignment = await self._commit(assignment, {"rating": rating, "feedback": feedback, "status": "Paid"})

        effects = self._effects(assignment_id, "rate")
        if assignment.writer_id:
            await effects.run("writer rating", self.refresh_writer_rating(assignment.writer_id))
            await effects.run("writer paysheet due", self.ledger.set_entry_status(assignment, "Due"))
            await effects.run(
                "notify writer",
                self.notifier.create(
                    assignment.writer_id,
                    f'You received a {rating}-star rating for "{assignment.title}".',
                    "assignment",
                    f"/assignments/{assignment.id}",
                ),
            )
        return await self._finish(assignment, "Thank you for your feedback", effects)

    async def refresh_writer_rating(self, writer_id: str) -> float:
        """Writer rating is the mean of every rated assignment, one decimal."""
        rows = await stream_docs(self.assignments.where("writer_id", "==", writer_id))
        ratings = [data["rating"] for _, data in rows if data.get("rating") is not None]
        completed = sum(1 for _, data in rows if data.get("completed_at") is not None)
        average = round_half_up(sum(ratings) / len(ratings), 1) if ratings else 0.0
        await update_user(self.db, writer_id, {
            "rating": average,
            "completed": completed,
            "updated_at": datetime.now(timezone.utc),
        })
        return average

    # ------------------------------------------------------------
    # Integrity report
    # ------------------------------------------------------------
    async def request_report(self, assignment_id: str, client: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_owner(assignment, client, "request a report")
            if not assignment.writer_id:
                raise ValidationFailed("A writer must be assigned before requesting a report")
            if assignment.report_status not in (None, "completed"):
                raise ValidationFailed("A report request is already in progress")
            assignment = await self._commit(assignment, {"turnitin_requested": True, "report_status": "requested"})

        effects = self._effects(assignment_id, "request report")
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'Client requested an integrity report for "{assignment.title}".',
                "report",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Report requested", effects)

    async def send_report_to_writer(self, assignment_id: str, admin: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            if assignment.report_status != "requested":
                raise ValidationFailed("No report request is pending")
            if not assignment.writer_id:
                raise ValidationFailed("Assignment has no writer")
            assignment = await self._commit(assignment, {"report_status": "sent_to_writer"})

        effects = self._effects(assignment_id, "report to writer")
        await effects.run(
            "notify writer",
            self.notifier.create(
                assignment.writer_id,
                f'Please upload an integrity report for "{assignment.title}".',
                "report",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Report request sent to writer", effects)

    async def upload_report(self, assignment_id: str, writer: User, report: Optional[UploadFile]) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            self._require_assignee(assignment, writer, "upload a report")
            if assignment.report_status != "sent_to_writer":
                raise ValidationFailed("No report has been requested from you")
            if report is None or not report.filename:
                raise ValidationFailed("Report file is required")

            stored = await save_upload(report, "reportFile")
            assignment = await self._commit(assignment, {"report_file": stored.model_dump(), "report_status": "writer_submitted"})

        effects = self._effects(assignment_id, "upload report")
        await effects.run(
            "notify admins",
            self.notifier.notify_admins(
                f'Writer uploaded the integrity report for "{assignment.title}".',
                "report",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Report uploaded successfully", effects)

    async def send_report_to_client(self, assignment_id: str, admin: User) -> TransitionResult:
        async with self.locks.hold(assignment_id):
            assignment = await self.load(assignment_id)
            if assignment.report_status != "writer_submitted":
                raise ValidationFailed("The writer has not submitted a report yet")
            if assignment.report_file is None:
                raise ValidationFailed("Report file is missing")
            assignment = await self._commit(assignment, {"report_status": "sent_to_user"})

        effects = self._effects(assignment_id, "report to client")
        await effects.run("writer paysheet pending", self._hold_due_entry(assignment))
        await effects.run(
            "notify client",
            self.notifier.create(
                assignment.student_id,
                f'The integrity report for "{assignment.title}" is ready.',
                "report",
                f"/assignments/{assignment.id}",
            ),
        )
        return await self._finish(assignment, "Report sent to client", effects)

    async def _hold_due_entry(self, assignment: Assignment):
        # A linked entry that is Due goes back to Pending while the client reviews the report
        if not assignment.paysheet_id:
            return None
        entry = await self.ledger.get(assignment.paysheet_id)
        if entry and entry.status == "Due":
            return await self.ledger.set_entry_status(assignment, "Pending")
        return entry

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    def can_view(self, assignment: Assignment, user: User) -> bool:
        if user.role == "admin":
            return True
        if user.role == "writer":
            return assignment.writer_id == user.id
        return assignment.student_id == user.id

    async def present(self, assignments: List[Assignment], viewer: User) -> List[dict]:
        people = await load_users(self.db, [a.student_id for a in assignments] + [a.writer_id for a in assignments])
        result = []
        for assignment in assignments:
            unread = await self.chats.unread_count(assignment.id, viewer.id)
            result.append(format_assignment(assignment, viewer.role, people, unread))
        return result

    async def get(self, assignment_id: str, viewer: User) -> dict:
        assignment = await self.load(assignment_id)
        if not self.can_view(assignment, viewer):
            raise Forbidden("Not authorized to view this assignment")
        return (await self.present([assignment], viewer))[0]

    async def list_all(self, viewer: User, status: str = None, writer_id: str = None, search: str = None) -> List[dict]:
        query = self.assignments
        if status:
            query = query.where("status", "==", status)
        assignments = [Assignment(**data) for _, data in await stream_docs(query)]
        if writer_id:
            assignments = [a for a in assignments if a.writer_id == writer_id]
        if search:
            needle = search.lower()
            assignments = [
                a for a in assignments
                if needle in a.title.lower() or needle in a.subject.lower() or needle in a.description.lower()
            ]
        assignments.sort(key=lambda a: a.created_at, reverse=True)
        return await self.present(assignments, viewer)

    async def list_new_submissions(self, viewer: User) -> List[dict]:
        rows = await stream_docs(self.assignments.where("status", "in", sorted(NEW_SUBMISSION_STATUSES)))
        assignments = [Assignment(**data) for _, data in rows]
        assignments = [a for a in assignments if not a.writer_id]
        assignments.sort(key=lambda a: a.created_at, reverse=True)
        return await self.present(assignments, viewer)

    async def list_mine(self, viewer: User, status: str = None) -> List[dict]:
        owner_field = "writer_id" if viewer.role == "writer" else "student_id"
        rows = await stream_docs(self.assignments.where(owner_field, "==", viewer.id))
        assignments = [Assignment(**data) for _, data in rows]
        if status:
            assignments = [a for a in assignments if a.status == status]
        assignments.sort(key=lambda a: a.created_at, reverse=True)
        return await self.present(assignments, viewer)
