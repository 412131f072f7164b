import pytest

from app.schemas import VerificationStatusEnum, LoanStatusEnum


@pytest.mark.asyncio
async def test_admin_stats_from_aggregates(monkeypatch):
    # Patch User/Loan.aggregate to simulate MongoDB responses
    class FakeAgg:
        def __init__(self, result):
            self._result = result

        async def to_list(self):
            return self._result

    verification = [
        {"_id": "pending", "count": 3},
        {"_id": "verified", "count": 5},
        {"_id": None, "count": 2},
    ]
    loans = [
        {"_id": "approved", "count": 4, "amount": 400000},
        {"_id": "pending", "count": 2, "amount": 75000},
    ]

    import app.services.report_service as rs

    monkeypatch.setattr(rs.User, "aggregate", staticmethod(lambda pipeline: FakeAgg(verification)))
    monkeypatch.setattr(rs.Loan, "aggregate", staticmethod(lambda pipeline: FakeAgg(loans)))

    stats = await rs.report_service.admin_stats()

    assert stats["verification_counts"] == {"pending": 3, "verified": 5, "rejected": 0, "not_submitted": 2}
    assert stats["loan_counts"] == {"pending": 2, "approved": 4, "rejected": 0, "paid": 0}
    assert stats["loan_amounts"]["approved"] == 400000
    assert stats["loan_amounts"]["paid"] == 0


@pytest.mark.asyncio
async def test_admin_stats_counts_stored_documents(make_user, make_loan):
    from app.services.report_service import report_service

    user = await make_user(verification_status=VerificationStatusEnum.verified)
    await make_user(verification_status=VerificationStatusEnum.pending)
    await make_loan(user, amount=1000)
    await make_loan(user, amount=2500)
    await make_loan(user, amount=500, status=LoanStatusEnum.rejected, rejection_reason="Duplicate")

    stats = await report_service.admin_stats()

    assert stats["verification_counts"]["verified"] == 1
    assert stats["verification_counts"]["pending"] == 1
    assert stats["loan_counts"]["pending"] == 2
    assert stats["loan_amounts"]["pending"] == 3500
    assert stats["loan_counts"]["rejected"] == 1
