from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ValidationError, ConflictError, AuthorizationError, NotFoundError
from app.database.models import Emi, Loan
from app.schemas import EmiStatusEnum, LoanStatusEnum, ManualEmiUpdateRequest
from app.services.emi_service import emi_service
from app.services.loan_service import loan_application_service


@pytest.fixture
def approved_loan(borrower, admin, make_loan):
    async def _approve(term=2, amount=10000):
        loan = await make_loan(borrower, amount=amount, term=term)
        await loan_application_service.approve_loan(str(loan.id), admin)
        emis = await Emi.find(Emi.loan_id == loan.id).sort("+installment_number").to_list()
        return loan, emis
    return _approve


async def _backdate(emi: Emi, days: int) -> Emi:
    emi.due_date = datetime.utcnow() - timedelta(days=days)
    await emi.save()
    return emi


@pytest.mark.asyncio
async def test_paying_non_final_emi_keeps_loan_approved(borrower, approved_loan):
    loan, emis = await approved_loan(term=2)

    paid = await emi_service.pay(str(emis[0].id), borrower, "pay_123")

    assert paid.status == EmiStatusEnum.paid
    assert paid.payment_id == "pay_123"
    assert paid.late_fee == 0
    assert paid.total_paid == pytest.approx(paid.amount)
    assert (await Loan.get(loan.id)).status == LoanStatusEnum.approved


@pytest.mark.asyncio
async def test_paying_last_emi_closes_the_loan(borrower, approved_loan):
    loan, emis = await approved_loan(term=2)

    await emi_service.pay(str(emis[0].id), borrower)
    await emi_service.pay(str(emis[1].id), borrower)

    assert (await Loan.get(loan.id)).status == LoanStatusEnum.paid
    stored = await Emi.find(Emi.loan_id == loan.id).to_list()
    assert all(e.status == EmiStatusEnum.paid for e in stored)
    assert all(e.payment_id.startswith("PAY-") for e in stored)


@pytest.mark.asyncio
async def test_late_payment_is_capped_at_twenty_percent(borrower, approved_loan):
    _, emis = await approved_loan(term=1)
    emi = await _backdate(emis[0], 25)

    paid = await emi_service.pay(str(emi.id), borrower)

    assert paid.late_fee == pytest.approx(emi.amount * 0.20)
    assert paid.total_paid == pytest.approx(emi.amount * 1.20)


@pytest.mark.asyncio
async def test_late_fee_grows_per_day(borrower, approved_loan):
    _, emis = await approved_loan(term=1)
    emi = await _backdate(emis[0], 5)

    paid = await emi_service.pay(str(emi.id), borrower)

    # Five whole days have passed; the sixth is still in progress
    assert paid.late_fee == pytest.approx(emi.amount * 0.05)


@pytest.mark.asyncio
async def test_double_payment_conflicts(borrower, approved_loan):
    _, emis = await approved_loan(term=2)
    await emi_service.pay(str(emis[0].id), borrower)

    with pytest.raises(ConflictError) as exc:
        await emi_service.pay(str(emis[0].id), borrower)
    assert exc.value.message == "This EMI has already been paid"


@pytest.mark.asyncio
async def test_only_owner_or_admin_can_pay(admin, make_user, approved_loan):
    _, emis = await approved_loan(term=2)
    stranger = await make_user(name="Stranger")

    with pytest.raises(AuthorizationError):
        await emi_service.pay(str(emis[0].id), stranger)

    paid = await emi_service.pay(str(emis[0].id), admin)
    assert paid.status == EmiStatusEnum.paid


@pytest.mark.asyncio
async def test_pay_unknown_emi(borrower):
    with pytest.raises(NotFoundError):
        await emi_service.pay("64b7f0c2a1b2c3d4e5f60718", borrower)


@pytest.mark.asyncio
async def test_overdue_sweep_marks_only_past_due_pending(borrower, approved_loan):
    loan, emis = await approved_loan(term=3)
    await _backdate(emis[0], 3)

    overdue = await emi_service.update_overdue()

    assert [e.id for e in overdue] == [emis[0].id]
    statuses = {e.installment_number: e.status for e in await Emi.find(Emi.loan_id == loan.id).to_list()}
    assert statuses == {1: EmiStatusEnum.overdue, 2: EmiStatusEnum.pending, 3: EmiStatusEnum.pending}

    # Running again finds nothing new
    assert await emi_service.update_overdue() == []


@pytest.mark.asyncio
async def test_overdue_emi_can_still_be_paid(borrower, approved_loan):
    _, emis = await approved_loan(term=2)
    await _backdate(emis[0], 2)
    await emi_service.update_overdue()

    paid = await emi_service.pay(str(emis[0].id), borrower)
    assert paid.status == EmiStatusEnum.paid
    assert paid.late_fee == pytest.approx(paid.amount * 0.02)


@pytest.mark.asyncio
async def test_manual_update_requires_admin(borrower, approved_loan):
    _, emis = await approved_loan(term=1)
    with pytest.raises(AuthorizationError):
        await emi_service.manual_update(str(emis[0].id), ManualEmiUpdateRequest(status="paid"), borrower)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [None, "", "settled"])
async def test_manual_update_validates_status(admin, approved_loan, status):
    _, emis = await approved_loan(term=1)
    with pytest.raises(ValidationError):
        await emi_service.manual_update(str(emis[0].id), ManualEmiUpdateRequest(status=status), admin)


@pytest.mark.asyncio
async def test_manual_payment_with_fee_override(admin, approved_loan):
    loan, emis = await approved_loan(term=1)
    await _backdate(emis[0], 10)

    request = ManualEmiUpdateRequest(status="paid", payment_reference="CASH-42", late_fee=0)
    emi = await emi_service.manual_update(str(emis[0].id), request, admin)

    assert emi.status == EmiStatusEnum.paid
    assert emi.payment_id == "CASH-42"
    assert emi.late_fee == 0
    assert (await Loan.get(loan.id)).status == LoanStatusEnum.paid


@pytest.mark.asyncio
async def test_manual_payment_date_is_stored_as_naive_utc(admin, approved_loan):
    _, emis = await approved_loan(term=2)
    received = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))

    emi = await emi_service.manual_update(
        str(emis[0].id), ManualEmiUpdateRequest(status="paid", payment_date=received), admin
    )

    assert emi.paid_date == datetime(2030, 1, 1, 6, 30)
    assert emi.payment_id.startswith("MANUAL-")


@pytest.mark.asyncio
async def test_manual_update_rejects_leaving_paid(admin, approved_loan):
    _, emis = await approved_loan(term=2)
    await emi_service.manual_update(str(emis[0].id), ManualEmiUpdateRequest(status="paid"), admin)

    for target in ("pending", "overdue"):
        with pytest.raises(ConflictError):
            await emi_service.manual_update(str(emis[0].id), ManualEmiUpdateRequest(status=target), admin)


@pytest.mark.asyncio
async def test_manual_mark_overdue(admin, approved_loan):
    _, emis = await approved_loan(term=2)
    emi = await emi_service.manual_update(str(emis[1].id), ManualEmiUpdateRequest(status="overdue"), admin)
    assert emi.status == EmiStatusEnum.overdue
    assert emi.paid_date is None


@pytest.mark.asyncio
async def test_generate_requires_approved_loan(borrower, admin, make_loan):
    loan = await make_loan(borrower)
    with pytest.raises(ConflictError) as exc:
        await emi_service.generate_for_loan(str(loan.id), admin)
    assert exc.value.message == "EMIs can only be generated for approved loans"


@pytest.mark.asyncio
async def test_generate_for_approved_loan_without_schedule(borrower, admin, make_loan):
    loan = await make_loan(borrower, term=4, status=LoanStatusEnum.approved)

    emis = await emi_service.generate_for_loan(str(loan.id), admin)
    assert len(emis) == 4

    with pytest.raises(ConflictError):
        await emi_service.generate_for_loan(str(loan.id), admin)
    assert await Emi.find(Emi.loan_id == loan.id).count() == 4


@pytest.mark.asyncio
async def test_schedule_cannot_be_written_twice(borrower, make_loan):
    loan = await make_loan(borrower, term=2, status=LoanStatusEnum.approved)
    await emi_service.create_schedule(loan)

    with pytest.raises(ConflictError):
        await emi_service.create_schedule(loan)
    assert await Emi.find(Emi.loan_id == loan.id).count() == 2


@pytest.mark.asyncio
async def test_loan_emis_visible_to_owner_and_admin_only(borrower, admin, make_user, approved_loan):
    loan, _ = await approved_loan(term=3)
    stranger = await make_user(name="Stranger")

    assert len(await emi_service.list_for_loan(str(loan.id), borrower)) == 3
    assert len(await emi_service.list_for_loan(str(loan.id), admin)) == 3
    with pytest.raises(AuthorizationError):
        await emi_service.list_for_loan(str(loan.id), stranger)


@pytest.mark.asyncio
async def test_listings_sorted_by_due_date(borrower, approved_loan):
    await approved_loan(term=3)
    mine = await emi_service.list_for_user(borrower)
    assert [e.due_date for e in mine] == sorted(e.due_date for e in mine)
    assert len(await emi_service.list_all()) == 3
