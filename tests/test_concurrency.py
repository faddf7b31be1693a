"""
Concurrent OTP issuance and ticket redemption against a shared database.

Every worker gets its own session and connection; a barrier releases them
together so the requests genuinely overlap.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import func, select

from src.core.auth.otp import STATUS_PENDING, CooldownActive, OtpIssued, OtpService
from src.core.auth.tickets import IssuedTicket, TicketFailure, TicketService
from src.core.config import OtpPolicy
from src.core.db.tables.account import Account
from src.core.db.tables.otp import OtpRecord
from src.core.security import hash_secret, verify_secret

EMAIL = "ana@quscina.test"


def run_together(workers, task):
    barrier = threading.Barrier(workers)

    def wrapped(index):
        barrier.wait()
        return task(index)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(wrapped, range(workers)))


class TestConcurrentOtpIssue:
    def test_one_code_per_email(self, file_sessionmaker):
        def issue(_):
            with file_sessionmaker() as session:
                return OtpService(session, OtpPolicy()).issue(EMAIL)

        results = run_together(8, issue)

        issued = [r for r in results if isinstance(r, OtpIssued)]
        cooldowns = [r for r in results if isinstance(r, CooldownActive)]
        assert len(issued) == 1
        assert len(cooldowns) == 7
        assert {c.expires_at for c in cooldowns} == {issued[0].expires_at}

        with file_sessionmaker() as session:
            pending = session.execute(
                select(func.count()).select_from(OtpRecord).where(OtpRecord.status == STATUS_PENDING)
            ).scalar()
        assert pending == 1


class TestConcurrentTicketRedeem:
    def test_ticket_redeemed_once(self, file_sessionmaker, settings):
        with file_sessionmaker() as session:
            session.add(Account(
                employee_id="202500002", role="cashier", status="active",
                pin_hash=hash_secret("123456"),
            ))
            session.commit()
            ticket = TicketService(session, settings).issue("202500002", created_by="202500001")
        assert isinstance(ticket, IssuedTicket)

        new_pins = [f"{n}{n}{n}{n}{n}{n}" for n in range(1, 7)]

        def redeem(index):
            with file_sessionmaker() as session:
                return TicketService(session, settings).redeem(
                    "202500002", ticket.code, new_pins[index], request_id=f"req-{index}"
                )

        results = run_together(len(new_pins), redeem)

        winners = [i for i, r in enumerate(results) if r.ok]
        assert len(winners) == 1
        assert {r.failure for r in results if not r.ok} == {TicketFailure.TICKET_INVALID}

        with file_sessionmaker() as session:
            account = session.get(Account, "202500002")
            assert verify_secret(new_pins[winners[0]], account.pin_hash)
