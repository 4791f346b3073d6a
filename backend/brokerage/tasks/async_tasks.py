import logging

from brokerage.celery_app import celery_app
from brokerage.core.database import SessionLocal
from brokerage.core.exceptions import CommissionEngineError
from brokerage.services.approval import ApprovalService

logger = logging.getLogger(__name__)


@celery_app.task(name="complete_approved_transaction")
def complete_approved_transaction(transaction_id: int, notes: str = None):
    """
    Async task to finalize an approved transaction (approved -> completed).
    Engine errors are reported in the result rather than retried.
    """
    db = SessionLocal()
    try:
        service = ApprovalService(db)
        transaction = service.complete(transaction_id, notes=notes)
        return {
            "transaction_id": transaction.id,
            "status": transaction.status,
            "completed_at": transaction.completed_at.isoformat() if transaction.completed_at else None,
        }
    except CommissionEngineError as e:
        logger.warning(f"Could not complete transaction {transaction_id}: {e.message}")
        return {
            "transaction_id": transaction_id,
            "status": "error",
            "error_type": e.error_type,
            "detail": e.message,
        }
    finally:
        db.close()
