from typing import Dict, Any
import logging

from app.database.models import User, Loan
from app.schemas import VerificationStatusEnum, LoanStatusEnum

logger = logging.getLogger(__name__)

# Response keys for user verification counts
VERIFICATION_KEYS = {
    VerificationStatusEnum.pending.value: "pending",
    VerificationStatusEnum.verified.value: "verified",
    VerificationStatusEnum.rejected.value: "rejected",
    VerificationStatusEnum.not_submitted.value: "not_submitted",
}


class ReportService:
    """Aggregated counts for the admin dashboard."""

    async def admin_stats(self) -> Dict[str, Any]:
        try:
            verification_pipeline = [
                {"$group": {"_id": "$verification_status", "count": {"$sum": 1}}}
            ]
            verification_result = await User.aggregate(verification_pipeline).to_list()

            verification_counts = {key: 0 for key in VERIFICATION_KEYS.values()}
            for r in verification_result:
                key = VERIFICATION_KEYS.get(r.get("_id") or VerificationStatusEnum.not_submitted.value)
                if key:
                    verification_counts[key] += r.get("count", 0)

            loan_pipeline = [
                {"$group": {
                    "_id": "$status",
                    "count": {"$sum": 1},
                    "amount": {"$sum": "$amount"},
                }}
            ]
            loan_result = await Loan.aggregate(loan_pipeline).to_list()
            logger.debug("Loan stats result: %s", loan_result)

            loan_counts = {s.value: 0 for s in LoanStatusEnum}
            loan_amounts = {s.value: 0 for s in LoanStatusEnum}
            for r in loan_result:
                status = r.get("_id")
                if status in loan_counts:
                    loan_counts[status] = r.get("count", 0)
                    loan_amounts[status] = r.get("amount", 0) or 0

            return {
                "verification_counts": verification_counts,
                "loan_counts": loan_counts,
                "loan_amounts": loan_amounts,
            }

        except Exception as e:
            logger.exception("Failed to build admin stats: %s", e)
            raise


report_service = ReportService()
