# services/ledger.py
"""
Paysheet ledger.

Writer entries accumulate writer_price, admin entries accumulate
client_price - writer_price. At most one open (Pending/Due) entry exists per
(owner, period, kind); upserts for one owner are serialized in-process and
are idempotent per assignment.

Per-assignment payment status is never stored; individual_payments derives
it from the entries on every read.
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from assignflow.core.effects import SideEffects
from assignflow.core.errors import NotFound, ValidationFailed
from assignflow.core.events import EventSink
from assignflow.core.locks import KeyedLock, ledger_locks
from assignflow.models.assignment_model import Assignment, StoredFile
from assignflow.models.paysheet_model import (
    OPEN_STATUSES,
    IndividualPayment,
    MonthlyTotal,
    Paysheet,
)
from assignflow.models.user_model import public_user
from assignflow.services.directory import admin_ids, first_admin, load_users
from assignflow.utils.firebase import firestore_run, get_doc, stream_docs
from assignflow.utils.periods import is_current_period, period_for, period_sort_key

logger = logging.getLogger("assignflow.ledger")

# Assignment statuses whose writer earnings count as payable
PAYABLE_ASSIGNMENT_STATUSES = {"Admin Approved", "Paid"}


def contribution(assignment: Assignment, kind: str) -> float:
    if kind == "admin":
        return assignment.admin_profit
    return assignment.writer_price or 0.0


def _timestamp(value: Optional[datetime]) -> float:
    return value.timestamp() if value else 0.0


def individual_payments(
    assignments: Iterable[Assignment],
    entries: Iterable[Paysheet],
    kind: str = "writer",
) -> List[IndividualPayment]:
    """One row per assignment with a positive contribution, status derived from the ledger."""
    by_assignment: Dict[str, Paysheet] = {}
    for entry in entries:
        for assignment_id in entry.assignments:
            current = by_assignment.get(assignment_id)
            if current is None or (entry.status == "Paid" and current.status != "Paid"):
                by_assignment[assignment_id] = entry

    payments = []
    for assignment in assignments:
        amount = contribution(assignment, kind)
        if amount <= 0:
            continue

        entry = by_assignment.get(assignment.id)
        if entry and entry.status == "Paid":
            status = "Paid"
        elif entry and entry.status == "Due":
            status = "Due"
        elif assignment.status in PAYABLE_ASSIGNMENT_STATUSES:
            status = "Due"
        else:
            status = "Pending"

        payments.append(IndividualPayment(
            assignment_id=assignment.id,
            title=assignment.title,
            amount=amount,
            payment_status=status,
            period=entry.period if entry else period_for(assignment.completed_at or assignment.created_at),
            paysheet_id=entry.id if entry else None,
            proof_url=entry.proof_url if entry else None,
            assignment_status=assignment.status,
            completed_at=assignment.completed_at,
            created_at=assignment.created_at,
        ))

    payments.sort(key=lambda p: _timestamp(p.completed_at or p.created_at), reverse=True)
    return payments


def monthly_totals(
    payments: Iterable[IndividualPayment],
    entries: Iterable[Paysheet] = (),
    now: Optional[datetime] = None,
) -> List[MonthlyTotal]:
    totals: Dict[str, MonthlyTotal] = {}
    for p in payments:
        total = totals.get(p.period)
        if total is None:
            total = totals[p.period] = MonthlyTotal(period=p.period, is_current_month=is_current_period(p.period, now))
        total.total_amount += p.amount
        total.assignment_count += 1
        if p.payment_status == "Paid":
            total.paid_amount += p.amount
        elif p.payment_status == "Due":
            total.due_amount += p.amount
        else:
            total.pending_amount += p.amount

    # Open entry wins when a period has both an open and a paid one
    for entry in entries:
        total = totals.get(entry.period)
        if total is None:
            continue
        if total.paysheet_id is None or (entry.is_open and total.paysheet_status == "Paid"):
            total.paysheet_id = entry.id
            total.paysheet_status = entry.status
            total.proof_url = entry.proof_url

    for total in totals.values():
        total.total_amount = round(total.total_amount, 2)
        total.paid_amount = round(total.paid_amount, 2)
        total.due_amount = round(total.due_amount, 2)
        total.pending_amount = round(total.pending_amount, 2)
        total.total_to_pay = round(total.due_amount + total.pending_amount, 2)

    return sorted(totals.values(), key=lambda t: period_sort_key(t.period), reverse=True)


def summarize(payments: Iterable[IndividualPayment]) -> dict:
    summary = {"total_earned": 0.0, "total_paid": 0.0, "total_due": 0.0, "total_pending": 0.0}
    for p in payments:
        summary["total_earned"] += p.amount
        if p.payment_status == "Paid":
            summary["total_paid"] += p.amount
        elif p.payment_status == "Due":
            summary["total_due"] += p.amount
        else:
            summary["total_pending"] += p.amount
    return {k: round(v, 2) for k, v in summary.items()}


class PaysheetLedger:
    def __init__(self, db, events: EventSink, notifier=None, locks: KeyedLock = ledger_locks):
        self.db = db
        self.events = events
        self.notifier = notifier
        self.locks = locks

    @property
    def paysheets(self):
        return self.db.collection("paysheets")

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    async def get(self, paysheet_id: str) -> Optional[Paysheet]:
        data = await get_doc(self.paysheets.document(paysheet_id))
        return Paysheet(**data) if data else None

    async def entries_for_owner(self, owner_id: str, kind: str) -> List[Paysheet]:
        rows = await stream_docs(self.paysheets.where("owner_id", "==", owner_id))
        return [Paysheet(**data) for _, data in rows if data.get("kind") == kind]

    async def entries_of_kind(self, kind: str) -> List[Paysheet]:
        rows = await stream_docs(self.paysheets.where("kind", "==", kind))
        return [Paysheet(**data) for _, data in rows]

    async def entries_containing(self, assignment_id: str, kind: str, owner_id: str = None) -> List[Paysheet]:
        rows = await stream_docs(self.paysheets.where("assignments", "array_contains", assignment_id))
        entries = [Paysheet(**data) for _, data in rows]
        return [e for e in entries if e.kind == kind and (owner_id is None or e.owner_id == owner_id)]

    async def _assignments(self, field: str = None, value=None) -> List[Assignment]:
        query = self.db.collection("assignments")
        if field:
            query = query.where(field, "==", value)
        return [Assignment(**data) for _, data in await stream_docs(query)]

    # ------------------------------------------------------------
    # Upserts
    # ------------------------------------------------------------
    async def upsert(
        self,
        kind: str,
        owner_id: str,
        assignment_id: str,
        amount: float,
        when: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> Optional[Paysheet]:
        """
        Credit one assignment to the open entry for (owner, period, kind),
        creating the entry if needed. A second call for the same assignment
        returns the entry that already holds it.
        """
        if amount <= 0:
            return None

        period = period_for(when)
        async with self.locks.hold(f"{kind}:{owner_id}"):
            held = await self.entries_containing(assignment_id, kind, owner_id)
            if held:
                entry = next((e for e in held if e.is_open), held[0])
                if status and entry.is_open and entry.status != status:
                    await self._set_status(entry, status)
                return entry

            now = datetime.now(timezone.utc)
            candidates = [
                e for e in await self.entries_for_owner(owner_id, kind)
                if e.period == period and e.status in OPEN_STATUSES
            ]
            if candidates:
                entry = candidates[0]
                fields = {
                    "amount": entry.amount + amount,
                    "assignments": entry.assignments + [assignment_id],
                    "updated_at": now,
                }
                if status:
                    fields["status"] = status
                await firestore_run(self.paysheets.document(entry.id).update, fields)
                entry = entry.model_copy(update=fields)
                logger.info(f"Credited {amount} to {kind} paysheet {entry.id} ({period}) for assignment {assignment_id}")
            else:
                entry = Paysheet(
                    _id=uuid4().hex,
                    owner_id=owner_id,
                    kind=kind,
                    period=period,
                    amount=amount,
                    status=status or "Due",
                    assignments=[assignment_id],
                    created_at=now,
                    updated_at=now,
                )
                await firestore_run(self.paysheets.document(entry.id).set, entry.model_dump(by_alias=True))
                logger.info(f"Opened {kind} paysheet {entry.id} ({period}) for {owner_id} with assignment {assignment_id}")

        return entry

    async def upsert_writer_entry(
        self,
        assignment: Assignment,
        status: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> Optional[Paysheet]:
        if not assignment.writer_id or not assignment.writer_price or assignment.writer_price <= 0:
            return None

        entry = await self.upsert(
            "writer",
            assignment.writer_id,
            assignment.id,
            assignment.writer_price,
            when or assignment.completed_at,
            status,
        )
        if entry and assignment.paysheet_id != entry.id:
            await firestore_run(
                self.db.collection("assignments").document(assignment.id).update,
                {"paysheet_id": entry.id},
            )
        return entry

    async def upsert_admin_entry(self, assignment: Assignment) -> Optional[Paysheet]:
        profit = assignment.admin_profit
        if profit <= 0:
            logger.info(f"No admin profit recorded for assignment {assignment.id} (profit {profit})")
            return None

        admin = await first_admin(self.db)
        if not admin:
            logger.warning(f"No admin user to hold profit for assignment {assignment.id}")
            return None
        return await self.upsert("admin", admin.id, assignment.id, profit, assignment.completed_at)

    async def _set_status(self, entry: Paysheet, status: str):
        await firestore_run(
            self.paysheets.document(entry.id).update,
            {"status": status, "updated_at": datetime.now(timezone.utc)},
        )
        entry.status = status

    async def set_entry_status(self, assignment: Assignment, status: str) -> Optional[Paysheet]:
        """Move the writer entry crediting this assignment to status, unless it is already paid."""
        entry = await self.get(assignment.paysheet_id) if assignment.paysheet_id else None
        if entry is None or assignment.id not in entry.assignments:
            held = await self.entries_containing(assignment.id, "writer", assignment.writer_id)
            entry = next((e for e in held if e.is_open), held[0] if held else None)

        if entry is None:
            logger.info(f"No writer paysheet holds assignment {assignment.id}")
            return None
        if entry.status == "Paid" or entry.status == status:
            return entry

        async with self.locks.hold(f"writer:{entry.owner_id}"):
            await self._set_status(entry, status)
        logger.info(f"Writer paysheet {entry.id} -> {status} (assignment {assignment.id})")
        return entry

    # ------------------------------------------------------------
    # Views
    # ------------------------------------------------------------
    async def writer_view(self, writer_id: str) -> dict:
        assignments = await self._assignments("writer_id", writer_id)

        # Link priced assignments that slipped past the incremental upserts
        effects = SideEffects(context=f"writer {writer_id} paysheet backfill")
        for assignment in assignments:
            if assignment.writer_price and assignment.writer_price > 0 and not assignment.paysheet_id:
                await effects.run(f"link assignment {assignment.id}", self.upsert_writer_entry(assignment))

        entries = await self.entries_for_owner(writer_id, "writer")
        payments = individual_payments(assignments, entries, "writer")
        return {
            "payments": [p.model_dump() for p in payments],
            "monthly_totals": [t.model_dump() for t in monthly_totals(payments, entries)],
            "summary": summarize(payments),
        }

    async def admin_view(self) -> dict:
        entries = await self.entries_of_kind("admin")
        assignments = [a for a in await self._assignments() if a.admin_profit > 0]
        payments = individual_payments(assignments, entries, "admin")
        return {
            "payments": [p.model_dump() for p in payments],
            "monthly_totals": [t.model_dump() for t in monthly_totals(payments, entries)],
            "summary": summarize(payments),
        }

    async def grouped_writer_entries(self, status: Optional[str] = None) -> List[dict]:
        """Admin management view: writer entries grouped by writer."""
        entries = await self.entries_of_kind("writer")
        if status:
            entries = [e for e in entries if e.status == status]

        by_writer: Dict[str, List[Paysheet]] = defaultdict(list)
        for entry in entries:
            by_writer[entry.owner_id].append(entry)

        writers = await load_users(self.db, by_writer.keys())
        groups = []
        for writer_id, writer_entries in by_writer.items():
            assignment_ids = []
            for entry in writer_entries:
                for aid in entry.assignments:
                    if aid not in assignment_ids:
                        assignment_ids.append(aid)

            assignments = []
            for aid in assignment_ids:
                data = await get_doc(self.db.collection("assignments").document(aid))
                if data:
                    assignments.append(Assignment(**data))

            payments = individual_payments(assignments, writer_entries, "writer")
            writer = writers.get(writer_id)
            groups.append({
                "writer": public_user(writer) if writer else {"id": writer_id, "name": "Unknown writer"},
                "paysheets": [e.model_dump() for e in sorted(writer_entries, key=lambda e: period_sort_key(e.period), reverse=True)],
                "monthly_totals": [t.model_dump() for t in monthly_totals(payments, writer_entries)],
                "assignments": [p.model_dump() for p in payments],
                "summary": summarize(payments),
            })

        groups.sort(key=lambda g: g["writer"].get("name") or "")
        return groups

    # ------------------------------------------------------------
    # Batch backfill
    # ------------------------------------------------------------
    async def generate(self) -> dict:
        """Credit every Paid assignment that never reached the ledger."""
        paid = await self._assignments("status", "Paid")
        candidates = [
            a for a in paid
            if not a.paysheet_id and a.writer_id and a.writer_price and a.writer_price > 0
        ]

        groups: Dict[tuple, List[Assignment]] = defaultdict(list)
        for assignment in candidates:
            when = assignment.completed_at or assignment.updated_at
            groups[(assignment.writer_id, period_for(when))].append(assignment)

        touched = set()
        for (writer_id, period), group in groups.items():
            for assignment in group:
                entry = await self.upsert_writer_entry(assignment, when=assignment.completed_at or assignment.updated_at)
                if entry:
                    touched.add(entry.id)
                await self.upsert_admin_entry(assignment)
            logger.info(f"Backfilled {len(group)} assignment(s) for writer {writer_id} ({period})")

        return {"processed": len(candidates), "paysheets": len(touched)}

    # ------------------------------------------------------------
    # Payouts
    # ------------------------------------------------------------
    async def _announce_payout(self, entry: Paysheet, message: str):
        effects = SideEffects(context=f"paysheet {entry.id} payout")
        if self.notifier and entry.kind == "writer":
            await effects.run("notify owner", self.notifier.create(entry.owner_id, message, "general", "/paysheets"))
        await effects.run("refresh owner", self.events.notify(entry.owner_id, "refreshPaysheets", {"paysheet_id": entry.id}))
        admins = await effects.run("load admins", admin_ids(self.db))
        for admin_id in admins.value if admins.ok else []:
            await effects.run(f"refresh admin {admin_id}", self.events.notify(admin_id, "refreshPaysheets", {"paysheet_id": entry.id}))
        return effects

    async def mark_entry_paid(
        self,
        paysheet_id: str,
        payment_method: str = "Bank",
        proof: Optional[StoredFile] = None,
        reference_id: Optional[str] = None,
    ) -> Paysheet:
        entry = await self.get(paysheet_id)
        if entry is None:
            raise NotFound("Paysheet")
        if entry.status == "Paid":
            raise ValidationFailed("Paysheet is already marked as paid")
        if payment_method == "Bank" and proof is None:
            raise ValidationFailed("Payment proof is required for bank transfers")

        now = datetime.now(timezone.utc)
        fields = {
            "status": "Paid",
            "payment_method": payment_method,
            "payment_status": "Paid",
            "paid_at": now,
            "updated_at": now,
        }
        if proof:
            fields["proof_url"] = proof.path
        if reference_id:
            fields["payment_reference_id"] = reference_id

        async with self.locks.hold(f"{entry.kind}:{entry.owner_id}"):
            await firestore_run(self.paysheets.document(entry.id).update, fields)
        entry = entry.model_copy(update=fields)
        logger.info(f"Paysheet {entry.id} marked paid via {payment_method}")

        await self._announce_payout(
            entry,
            f"Your paysheet for {entry.period} of ${entry.amount:.2f} has been marked as paid.",
        )
        return entry

    async def mark_assignment_paid(self, assignment_id: str, proof: Optional[StoredFile]) -> Paysheet:
        """
        Pay out a single assignment. It is moved out of its open entry into a
        Paid entry of its own so the open entry's amount stays consistent.
        """
        data = await get_doc(self.db.collection("assignments").document(assignment_id))
        if not data:
            raise NotFound("Assignment")
        assignment = Assignment(**data)
        if not assignment.writer_id:
            raise ValidationFailed("Assignment has no writer assigned")
        if not assignment.writer_price or assignment.writer_price <= 0:
            raise ValidationFailed("Assignment has no writer price")
        if proof is None:
            raise ValidationFailed("Payment proof is required")

        now = datetime.now(timezone.utc)
        async with self.locks.hold(f"writer:{assignment.writer_id}"):
            held = await self.entries_containing(assignment.id, "writer", assignment.writer_id)
            if any(e.status == "Paid" for e in held):
                raise ValidationFailed("This assignment has already been paid")

            for entry in held:
                remaining = [aid for aid in entry.assignments if aid != assignment.id]
                if not remaining:
                    await firestore_run(self.paysheets.document(entry.id).delete)
                else:
                    await firestore_run(self.paysheets.document(entry.id).update, {
                        "amount": max(entry.amount - assignment.writer_price, 0.0),
                        "assignments": remaining,
                        "updated_at": now,
                    })

            paid = Paysheet(
                _id=uuid4().hex,
                owner_id=assignment.writer_id,
                kind="writer",
                period=held[0].period if held else period_for(assignment.completed_at),
                amount=assignment.writer_price,
                status="Paid",
                assignments=[assignment.id],
                proof_url=proof.path,
                payment_method="Bank",
                payment_status="Paid",
                paid_at=now,
                created_at=now,
                updated_at=now,
            )
            await firestore_run(self.paysheets.document(paid.id).set, paid.model_dump(by_alias=True))

        await firestore_run(
            self.db.collection("assignments").document(assignment.id).update,
            {"paysheet_id": paid.id, "updated_at": now},
        )
        logger.info(f"Assignment {assignment.id} paid out individually in paysheet {paid.id}")

        await self._announce_payout(
            paid,
            f'Payment of ${paid.amount:.2f} for "{assignment.title}" has been marked as paid.',
        )
        return paid
