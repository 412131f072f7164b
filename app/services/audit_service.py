import logging
from typing import Optional, Dict, Any, List
from datetime import datetime

from app.database.models.audit_log_model import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Simple service to create and read audit logs stored in MongoDB using Beanie."""

    async def create_audit(
        self,
        *,
        action: str,
        actor: Optional[str] = None,
        acted: Optional[str] = None,
        status: str = "successful",
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditLog:
        audit = AuditLog(
            action=action,
            actor=actor,
            acted=acted,
            status=status,
            details=details,
            timestamp=timestamp or datetime.utcnow(),
        )
        await audit.insert()
        return audit

    # Audit writes never fail the operation being audited
    async def record(self, action: str, *, actor: Any = None, acted: Any = None, status: str = "successful", **details) -> None:
        try:
            await self.create_audit(
                action=action,
                actor=str(actor) if actor is not None else None,
                acted=str(acted) if acted is not None else None,
                status=status,
                details=details or None,
            )
        except Exception:
            logger.exception("Failed to write %s audit log", action)

    async def get_audits(self, skip: int = 0, limit: int = 50, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filters:
            # Accept direct equality filters for action, actor, acted, status
            for key in ("action", "actor", "acted", "status"):
                if filters.get(key):
                    query[key] = filters[key]
            # Date range: start_date and/or end_date should be datetime objects
            ts_query = {}
            if filters.get("start_date"):
                ts_query["$gte"] = filters["start_date"]
            if filters.get("end_date"):
                ts_query["$lte"] = filters["end_date"]
            if ts_query:
                query["timestamp"] = ts_query

        total = await AuditLog.find(query).count()
        docs = await AuditLog.find(query).sort("-timestamp").skip(skip).limit(limit).to_list()

        results: List[Dict[str, Any]] = []
        for d in docs:
            results.append({
                "id": str(d.id),
                "action": d.action,
                "actor": d.actor,
                "acted": d.acted,
                "timestamp": d.timestamp.isoformat() if d.timestamp else None,
                "status": d.status,
                "details": d.details,
            })

        return {"data": results, "total": total, "skip": skip, "limit": limit}


audit_service = AuditService()
