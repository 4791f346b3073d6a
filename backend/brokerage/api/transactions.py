"""Transactions API: draft, submit, review queue, approve/reject, complete."""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from brokerage.core.database import get_db
from brokerage.core.security import get_current_user, require_admin
from brokerage.models.agent import Agent
from brokerage.models.transaction import Transaction as TransactionModel, TransactionStatus
from brokerage.schemas.commission import ApprovalResult, LedgerEntry
from brokerage.schemas.transaction import (
    BulkReviewRequest, BulkReviewResult, RejectRequest, ReviewRequest, StatusChange,
    Transaction, TransactionCreate, TransactionList, TransactionStats, TransactionUpdate,
)
from brokerage.services.approval import ApprovalService

logger = logging.getLogger(__name__)
# Stored as JSON-ready values: nested dicts and plain enum strings
JSON_FIELDS = {
    "market_type", "transaction_type", "commission_type",
    "property_data", "client_data", "co_broking_data",
}

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def _get_visible_transaction(service: ApprovalService, transaction_id: int, user: Agent) -> TransactionModel:
    transaction = service.get_transaction(transaction_id)
    # Agents only see their own transactions
    if not user.is_admin and transaction.agent_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found or access denied",
        )
    return transaction


def _get_owned_transaction(service: ApprovalService, transaction_id: int, user: Agent) -> TransactionModel:
    transaction = service.get_transaction(transaction_id)
    if transaction.agent_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found or access denied",
        )
    return transaction


@router.post("", response_model=Transaction, status_code=status.HTTP_201_CREATED)
def create_transaction(
    data: TransactionCreate,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a draft transaction for the current agent"""
    payload = data.model_dump(mode="json")
    transaction = TransactionModel(
        agent_id=current_user.id,
        market_type=payload["market_type"],
        transaction_type=payload["transaction_type"],
        transaction_date=data.transaction_date,
        property_data=payload["property_data"],
        client_data=payload["client_data"],
        is_co_broking=data.is_co_broking,
        co_broking_data=payload["co_broking_data"],
        commission_type=payload["commission_type"],
        commission_value=data.commission_value,
        commission_amount=data.commission_amount,
        notes=data.notes,
        status=TransactionStatus.DRAFT.value,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)

    logger.info(f"Draft transaction {transaction.id} created by agent {current_user.id}")
    return transaction


@router.get("", response_model=TransactionList)
def list_transactions(
    status_filter: Optional[TransactionStatus] = None,
    limit: int = 10,
    offset: int = 0,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List transactions. Admins see the whole queue, agents see their own."""
    limit = max(1, min(limit, 100))
    query = db.query(TransactionModel)

    if not current_user.is_admin:
        query = query.filter(TransactionModel.agent_id == current_user.id)
    if status_filter:
        query = query.filter(TransactionModel.status == status_filter.value)

    total = query.count()
    items = (
        query.order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
        .offset(max(offset, 0))
        .limit(limit)
        .all()
    )
    return {"total": total, "items": items}


@router.get("/stats", response_model=TransactionStats)
def get_transaction_stats(
    agent_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Approval queue counts and ledger totals (admin only)"""
    require_admin(current_user)
    return ApprovalService(db).queue_stats(agent_id=agent_id, start=start_date, end=end_date)


@router.post("/bulk", response_model=BulkReviewResult)
def bulk_review(
    body: BulkReviewRequest,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Approve or reject several transactions (admin only). Each one succeeds or fails on its own."""
    require_admin(current_user)
    results = ApprovalService(db).bulk_review(
        body.transaction_ids,
        current_user.id,
        body.action,
        notes=body.notes,
        reason=body.reason,
    )
    succeeded = len([r for r in results if r["success"]])
    return {"succeeded": succeeded, "failed": len(results) - succeeded, "results": results}


@router.get("/{transaction_id}", response_model=Transaction)
def get_transaction(
    transaction_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_visible_transaction(ApprovalService(db), transaction_id, current_user)


@router.put("/{transaction_id}", response_model=Transaction)
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Edit a draft (owning agent only)"""
    service = ApprovalService(db)
    _get_owned_transaction(service, transaction_id, current_user)

    python_values = data.model_dump(exclude_unset=True, exclude_none=True)
    json_values = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    changes = {
        field: json_values[field] if field in JSON_FIELDS else value
        for field, value in python_values.items()
    }
    return service.update_draft(transaction_id, changes)


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a draft (owning agent only)"""
    service = ApprovalService(db)
    _get_owned_transaction(service, transaction_id, current_user)
    service.delete_draft(transaction_id)
    return {"message": "Transaction deleted successfully"}


@router.post("/{transaction_id}/submit", response_model=Transaction)
def submit_transaction(
    transaction_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Send a draft to the approval queue (owning agent only)"""
    service = ApprovalService(db)
    _get_owned_transaction(service, transaction_id, current_user)
    return service.submit(transaction_id, current_user.id)


@router.post("/{transaction_id}/review", response_model=Transaction)
def start_review(
    transaction_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Open a submitted transaction for review (admin only)"""
    require_admin(current_user)
    return ApprovalService(db).start_review(transaction_id, current_user.id)


@router.post("/{transaction_id}/approve", response_model=ApprovalResult)
def approve_transaction(
    transaction_id: int,
    body: Optional[ReviewRequest] = None,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Approve a transaction and write its commission and leadership bonus ledger (admin only)"""
    require_admin(current_user)
    notes = body.notes if body else None
    result = ApprovalService(db).approve_transaction(transaction_id, current_user.id, notes=notes)
    return ApprovalResult.model_validate(result)


@router.post("/{transaction_id}/reject", response_model=Transaction)
def reject_transaction(
    transaction_id: int,
    body: RejectRequest,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Reject a transaction under review (admin only). No commission is paid."""
    require_admin(current_user)
    return ApprovalService(db).reject(transaction_id, current_user.id, body.reason)


@router.post("/{transaction_id}/complete", response_model=Transaction)
def complete_transaction(
    transaction_id: int,
    body: Optional[ReviewRequest] = None,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Finalize an approved transaction (admin only)"""
    require_admin(current_user)
    notes = body.notes if body else None
    return ApprovalService(db).complete(transaction_id, current_user.id, notes=notes)


@router.get("/{transaction_id}/ledger", response_model=List[LedgerEntry])
def get_transaction_ledger(
    transaction_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Ledger entries paid out of a transaction"""
    service = ApprovalService(db)
    _get_visible_transaction(service, transaction_id, current_user)
    return service.ledger_entries(transaction_id)


@router.get("/{transaction_id}/history", response_model=List[StatusChange])
def get_transaction_history(
    transaction_id: int,
    current_user: Agent = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Workflow transitions of a transaction, oldest first"""
    transaction = _get_visible_transaction(ApprovalService(db), transaction_id, current_user)
    return transaction.status_changes
