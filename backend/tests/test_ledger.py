"""
Paysheet ledger: period accumulation, derived payment status and payouts.
"""

import asyncio
from datetime import datetime, timezone

from assignflow.models.assignment_model import Assignment
from assignflow.models.paysheet_model import IndividualPayment, Paysheet
from assignflow.services.ledger import PaysheetLedger, individual_payments, monthly_totals, summarize
from assignflow.utils.periods import period_for

from conftest import (
    RecordingEventSink,
    admin_paysheets,
    assignment_doc,
    to_completed,
    to_in_progress,
    writer_paysheets,
)

MARCH = datetime(2025, 3, 10, tzinfo=timezone.utc)
APRIL = datetime(2025, 4, 2, tzinfo=timezone.utc)
PROOF = {"proof": ("transfer.pdf", b"%PDF transfer", "application/pdf")}


def make_assignment(aid, status="In Progress", writer_price=60.0, client_price=100.0, completed_at=None, **extra):
    return Assignment(
        _id=aid,
        title=f"Assignment {aid}",
        student_id="client-1",
        writer_id="writer-1",
        writer_price=writer_price,
        client_price=client_price,
        status=status,
        completed_at=completed_at,
        created_at=completed_at or MARCH,
        **extra,
    )


def make_entry(pid, assignments, status="Due", period="March 2025", amount=60.0, kind="writer"):
    return Paysheet(_id=pid, owner_id="writer-1", kind=kind, period=period, amount=amount, status=status, assignments=assignments)


def seed(db, assignment: Assignment):
    db.collection("assignments").document(assignment.id).set(assignment.model_dump(by_alias=True))


class TestIndividualPayments:
    def test_status_follows_entry_then_assignment(self):
        assignments = [
            make_assignment("due-entry"),
            make_assignment("paid-entry"),
            make_assignment("approved", status="Admin Approved"),
            make_assignment("working", status="Completed"),
        ]
        entries = [
            make_entry("p1", ["due-entry"]),
            make_entry("p2", ["paid-entry"], status="Paid"),
        ]

        by_id = {p.assignment_id: p for p in individual_payments(assignments, entries)}

        assert by_id["due-entry"].payment_status == "Due"
        assert by_id["due-entry"].paysheet_id == "p1"
        assert by_id["paid-entry"].payment_status == "Paid"
        assert by_id["approved"].payment_status == "Due"
        assert by_id["working"].payment_status == "Pending"

    def test_pending_entry_with_approved_assignment_is_due(self):
        payments = individual_payments(
            [make_assignment("a1", status="Paid")],
            [make_entry("p1", ["a1"], status="Pending")],
        )
        assert payments[0].payment_status == "Due"

    def test_paid_entry_wins_over_open_duplicate(self):
        payments = individual_payments(
            [make_assignment("a1")],
            [make_entry("open", ["a1"]), make_entry("paid", ["a1"], status="Paid")],
        )
        assert payments[0].payment_status == "Paid"
        assert payments[0].paysheet_id == "paid"

    def test_admin_kind_skips_assignments_without_profit(self):
        assignments = [
            make_assignment("profit", writer_price=60, client_price=100),
            make_assignment("even", writer_price=100, client_price=100),
            make_assignment("loss", writer_price=120, client_price=100),
        ]
        payments = individual_payments(assignments, [], kind="admin")
        assert [(p.assignment_id, p.amount) for p in payments] == [("profit", 40.0)]

    def test_unpriced_assignments_are_skipped(self):
        assert individual_payments([make_assignment("a1", writer_price=None)], []) == []


class TestMonthlyTotals:
    def _payment(self, aid, amount, status, period):
        return IndividualPayment(
            assignment_id=aid, title=aid, amount=amount, payment_status=status,
            period=period, assignment_status="Paid",
        )

    def test_groups_by_period_newest_first(self):
        payments = [
            self._payment("a1", 60, "Paid", "March 2025"),
            self._payment("a2", 40, "Due", "March 2025"),
            self._payment("a3", 25.5, "Pending", "April 2025"),
        ]

        totals = monthly_totals(payments, now=APRIL)

        assert [t.period for t in totals] == ["April 2025", "March 2025"]
        april, march = totals
        assert april.is_current_month is True
        assert april.pending_amount == 25.5
        assert april.total_to_pay == 25.5
        assert march.is_current_month is False
        assert march.total_amount == 100
        assert march.paid_amount == 60
        assert march.due_amount == 40
        assert march.total_to_pay == 40
        assert march.assignment_count == 2

    def test_open_entry_is_reported_over_paid_one(self):
        payments = [self._payment("a1", 60, "Paid", "March 2025"), self._payment("a2", 40, "Due", "March 2025")]
        entries = [
            make_entry("paid", ["a1"], status="Paid"),
            make_entry("open", ["a2"], status="Due", amount=40),
        ]

        (march,) = monthly_totals(payments, entries, now=APRIL)
        assert march.paysheet_id == "open"
        assert march.paysheet_status == "Due"

    def test_summary(self):
        payments = [
            self._payment("a1", 60, "Paid", "March 2025"),
            self._payment("a2", 40, "Due", "March 2025"),
            self._payment("a3", 10, "Pending", "March 2025"),
        ]
        assert summarize(payments) == {"total_earned": 110.0, "total_paid": 60.0, "total_due": 40.0, "total_pending": 10.0}


class TestUpserts:
    def test_upsert_is_idempotent_per_assignment(self, db, users):
        ledger = PaysheetLedger(db, RecordingEventSink())
        assignment = make_assignment("a1")
        seed(db, assignment)

        first = asyncio.run(ledger.upsert_writer_entry(assignment, status="Due"))
        second = asyncio.run(ledger.upsert_writer_entry(assignment, status="Due"))

        assert first.id == second.id
        entries = writer_paysheets(db)
        assert len(entries) == 1
        assert entries[0]["amount"] == 60
        assert entries[0]["assignments"] == ["a1"]
        assert assignment_doc(db, "a1")["paysheet_id"] == first.id

    def test_admin_upsert_is_idempotent(self, db, users):
        ledger = PaysheetLedger(db, RecordingEventSink())
        assignment = make_assignment("a1", completed_at=MARCH)

        asyncio.run(ledger.upsert_admin_entry(assignment))
        asyncio.run(ledger.upsert_admin_entry(assignment))

        entries = admin_paysheets(db)
        assert len(entries) == 1
        assert entries[0]["amount"] == 40
        assert entries[0]["period"] == "March 2025"

    def test_concurrent_upserts_share_one_entry(self, db, users):
        ledger = PaysheetLedger(db, RecordingEventSink())
        first, second = make_assignment("a1"), make_assignment("a2", writer_price=40.0)
        seed(db, first)
        seed(db, second)

        async def both():
            await asyncio.gather(
                ledger.upsert_writer_entry(first, status="Due"),
                ledger.upsert_writer_entry(second, status="Due"),
            )

        asyncio.run(both())

        entries = writer_paysheets(db)
        assert len(entries) == 1
        assert entries[0]["amount"] == 100
        assert sorted(entries[0]["assignments"]) == ["a1", "a2"]

    def test_paid_entry_is_never_reopened(self, db, users):
        period = period_for()
        paid = make_entry("closed", ["old"], status="Paid", period=period)
        db.collection("paysheets").document(paid.id).set(paid.model_dump(by_alias=True))

        ledger = PaysheetLedger(db, RecordingEventSink())
        assignment = make_assignment("a1")
        seed(db, assignment)
        entry = asyncio.run(ledger.upsert_writer_entry(assignment))

        assert entry.id != "closed"
        assert db.collection("paysheets").document("closed").get().to_dict()["amount"] == 60
        assert len(writer_paysheets(db)) == 2

    def test_separate_periods_get_separate_entries(self, db, users):
        ledger = PaysheetLedger(db, RecordingEventSink())
        march = make_assignment("a1", completed_at=MARCH)
        april = make_assignment("a2", completed_at=APRIL)
        seed(db, march)
        seed(db, april)

        asyncio.run(ledger.upsert_writer_entry(march))
        asyncio.run(ledger.upsert_writer_entry(april))

        periods = sorted(e["period"] for e in writer_paysheets(db))
        assert periods == ["April 2025", "March 2025"]


class TestWriterEntryLifecycle:
    def test_two_assignments_same_month_share_one_entry(self, api, db):
        first = to_completed(api, writer_price=60, title="First")
        second = to_completed(api, writer_price=40, title="Second")

        entries = writer_paysheets(db)
        assert len(entries) == 1
        assert entries[0]["amount"] == 100
        assert sorted(entries[0]["assignments"]) == sorted([first, second])
        assert entries[0]["status"] == "Pending"

    def test_writer_view_links_stray_assignments(self, api, db):
        stray = make_assignment("stray", completed_at=MARCH)
        seed(db, stray)

        resp = api.as_("writer-1").get("/api/paysheets/mine")
        assert resp.status_code == 200
        body = resp.json()

        assert [p["assignment_id"] for p in body["payments"]] == ["stray"]
        assert body["payments"][0]["period"] == "March 2025"
        assert assignment_doc(db, "stray")["paysheet_id"] is not None
        assert body["summary"]["total_earned"] == 60

    def test_only_writers_read_their_paysheets(self, api):
        assert api.as_("client-1").get("/api/paysheets/mine").status_code == 403


class TestGenerate:
    def test_backfills_paid_assignments_once(self, api, db):
        legacy = make_assignment("legacy", status="Paid", writer_price=45.0, client_price=90.0, completed_at=MARCH)
        seed(db, legacy)

        resp = api.as_("admin-1").post("/api/paysheets/generate")
        assert resp.status_code == 201
        assert resp.json()["processed"] == 1
        assert resp.json()["paysheets"] == 1

        entries = writer_paysheets(db)
        assert len(entries) == 1
        assert entries[0]["period"] == "March 2025"
        assert entries[0]["amount"] == 45
        assert assignment_doc(db, "legacy")["paysheet_id"] == entries[0]["_id"]
        assert admin_paysheets(db)[0]["amount"] == 45

        resp = api.as_("admin-1").post("/api/paysheets/generate")
        assert resp.status_code == 200
        assert resp.json()["processed"] == 0
        assert len(writer_paysheets(db)) == 1

    def test_generate_is_admin_only(self, api):
        assert api.as_("writer-1").post("/api/paysheets/generate").status_code == 403


class TestPayouts:
    def test_bank_payout_needs_proof(self, api, db):
        to_in_progress(api)
        entry_id = writer_paysheets(db)[0]["_id"]

        resp = api.as_("admin-1").put(f"/api/paysheets/{entry_id}/mark-paid", data={"payment_method": "Bank"})
        assert resp.status_code == 400
        assert writer_paysheets(db)[0]["status"] == "Due"

    def test_mark_entry_paid(self, api, db, events):
        to_in_progress(api)
        entry = writer_paysheets(db)[0]

        resp = api.as_("admin-1").put(f"/api/paysheets/{entry['_id']}/mark-paid", data={"payment_method": "Bank"}, files=PROOF)
        assert resp.status_code == 200

        stored = writer_paysheets(db)[0]
        assert stored["status"] == "Paid"
        assert stored["payment_method"] == "Bank"
        assert stored["proof_url"].startswith("uploads/paysheetProof-")
        assert stored["paid_at"] is not None

        notes = [d.to_dict()["message"] for d in db.collection("notifications").where("user_id", "==", "writer-1").stream()]
        assert f"Your paysheet for {entry['period']} of $60.00 has been marked as paid." in notes
        assert "refreshPaysheets" in events.names_for("admin-1")

        resp = api.as_("admin-1").put(f"/api/paysheets/{entry['_id']}/mark-paid", data={"payment_method": "Bank"}, files=PROOF)
        assert resp.status_code == 400

    def test_writer_can_fetch_own_payout_proof(self, api, db):
        to_in_progress(api)
        entry_id = writer_paysheets(db)[0]["_id"]
        api.as_("admin-1").put(f"/api/paysheets/{entry_id}/mark-paid", data={"payment_method": "Bank"}, files=PROOF)

        resp = api.as_("writer-1").get(f"/api/download/paysheet-proof/{entry_id}")
        assert resp.status_code == 200
        assert resp.content == b"%PDF transfer"
        assert api.as_("writer-2").get(f"/api/download/paysheet-proof/{entry_id}").status_code == 403

    def test_single_assignment_payout_splits_the_entry(self, api, db):
        first = to_in_progress(api, writer_price=60, title="First")
        second = to_in_progress(api, writer_price=40, title="Second")

        resp = api.as_("admin-1").put(f"/api/paysheets/assignments/{first}/mark-paid", files=PROOF)
        assert resp.status_code == 200
        paid_id = resp.json()["paysheet"]["id"]

        entries = {e["_id"]: e for e in writer_paysheets(db)}
        assert len(entries) == 2
        assert entries[paid_id]["status"] == "Paid"
        assert entries[paid_id]["assignments"] == [first]
        assert entries[paid_id]["amount"] == 60
        (open_entry,) = [e for e in entries.values() if e["_id"] != paid_id]
        assert open_entry["assignments"] == [second]
        assert open_entry["amount"] == 40
        assert assignment_doc(db, first)["paysheet_id"] == paid_id

        body = api.as_("writer-1").get("/api/paysheets/mine").json()
        statuses = {p["assignment_id"]: p["payment_status"] for p in body["payments"]}
        assert statuses == {first: "Paid", second: "Due"}
        assert body["monthly_totals"][0]["paid_amount"] == 60
        assert body["monthly_totals"][0]["total_to_pay"] == 40
        assert body["monthly_totals"][0]["paysheet_status"] == "Due"

        resp = api.as_("admin-1").put(f"/api/paysheets/assignments/{first}/mark-paid", files=PROOF)
        assert resp.status_code == 400

    def test_single_payout_of_only_assignment_removes_open_entry(self, api, db):
        aid = to_in_progress(api)
        resp = api.as_("admin-1").put(f"/api/paysheets/assignments/{aid}/mark-paid", files=PROOF)
        assert resp.status_code == 200

        entries = writer_paysheets(db)
        assert len(entries) == 1
        assert entries[0]["status"] == "Paid"

    def test_single_payout_needs_proof(self, api, db):
        aid = to_in_progress(api)
        resp = api.as_("admin-1").put(f"/api/paysheets/assignments/{aid}/mark-paid")
        assert resp.status_code == 400

    def test_admin_earnings(self, api):
        to_in_progress(api, price=100, writer_price=60)

        body = api.as_("admin-1").get("/api/paysheets/admin/earnings").json()
        assert body["summary"]["total_earned"] == 40
        assert body["payments"][0]["amount"] == 40

    def test_grouped_writer_entries(self, api):
        to_in_progress(api, writer_price=60)

        groups = api.as_("admin-1").get("/api/paysheets/").json()
        assert len(groups) == 1
        assert groups[0]["writer"]["name"] == "Wes Writer"
        assert groups[0]["summary"]["total_earned"] == 60
        assert api.as_("admin-1").get("/api/paysheets/", params={"status": "Paid"}).json() == []
