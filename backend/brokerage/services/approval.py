"""Transaction approval workflow.

    draft -> submitted -> under_review -> approved -> completed
    under_review -> rejected

Approval is the only step that pays anyone: it computes the agent's split
and the upline leadership bonuses and writes them to the ledger in the same
database transaction as the status change. Either all of it commits or
none of it does.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from brokerage.core.config import settings
from brokerage.core.exceptions import (
    AlreadyProcessedError,
    ApprovalInProgressError,
    CommissionEngineError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from brokerage.models.commission import CommissionLedgerEntry, LedgerEntryRole
from brokerage.models.transaction import (
    ClientType,
    CommissionType,
    MarketType,
    Transaction,
    TransactionStatus,
    TransactionStatusChange,
    TransactionType,
)
from brokerage.services.commission import CommissionCalculationService
from brokerage.services.leadership_bonus import LeadershipBonusDistributor
from brokerage.services.recruiter_graph import RecruiterGraphResolver
from brokerage.services.tiers import TierRegistry, tier_registry

logger = logging.getLogger(__name__)

BULK_ACTIONS = ("approve", "reject")


ALLOWED_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.DRAFT: frozenset({TransactionStatus.SUBMITTED}),
    TransactionStatus.SUBMITTED: frozenset({TransactionStatus.UNDER_REVIEW}),
    TransactionStatus.UNDER_REVIEW: frozenset({TransactionStatus.APPROVED, TransactionStatus.REJECTED}),
    TransactionStatus.APPROVED: frozenset({TransactionStatus.COMPLETED}),
    TransactionStatus.REJECTED: frozenset(),
    TransactionStatus.COMPLETED: frozenset(),
}

TERMINAL_STATES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current, target) -> bool:
    return TransactionStatus(target) in ALLOWED_TRANSITIONS[TransactionStatus(current)]


def assert_transition(current, target):
    if not can_transition(current, target):
        raise InvalidTransitionError(TransactionStatus(current).value, TransactionStatus(target).value)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _positive(value) -> bool:
    try:
        return Decimal(str(value)) > 0
    except (InvalidOperation, ValueError, TypeError):
        return False


def validate_for_submission(transaction: Transaction) -> List[str]:
    """Everything a draft needs before it can go to the approval queue."""
    errors = []

    if transaction.market_type not in [m.value for m in MarketType]:
        errors.append("Market type must be 'primary' or 'secondary'")
    if transaction.transaction_type not in [t.value for t in TransactionType]:
        errors.append("Transaction type must be 'sale', 'lease' or 'rental'")
    if (
        transaction.market_type == MarketType.PRIMARY.value
        and transaction.transaction_type != TransactionType.SALE.value
    ):
        errors.append("Primary market transactions must be of type 'sale'")
    if transaction.transaction_date is None:
        errors.append("Transaction date is required")

    prop = transaction.property_data or {}
    if not prop:
        errors.append("Property details are required")
    else:
        if _is_blank(prop.get("address")):
            errors.append("Property address is required")
        if _is_blank(prop.get("property_type")):
            errors.append("Property type is required")
        if not _positive(prop.get("price")):
            errors.append("Property price must be positive")

    client = transaction.client_data or {}
    if not client:
        errors.append("Client details are required")
    else:
        for key, label in (("name", "Client name"), ("phone", "Phone number"), ("source", "Client source")):
            if _is_blank(client.get(key)):
                errors.append(f"{label} is required")
        if _is_blank(client.get("email")) or "@" not in str(client.get("email")):
            errors.append("Valid client email is required")
        if client.get("type") not in [c.value for c in ClientType]:
            errors.append("Client type must be buyer, seller, tenant or landlord")

    if transaction.is_co_broking:
        co = transaction.co_broking_data or {}
        for key, label in (
            ("agent_name", "Co-broking agent name"),
            ("agency_name", "Co-broking agency name"),
            ("contact_info", "Co-broking contact info"),
        ):
            if _is_blank(co.get(key)):
                errors.append(f"{label} is required")
        try:
            co_split = Decimal(str(co.get("commission_split")))
            if not Decimal("0") <= co_split <= Decimal("100"):
                errors.append("Co-broking commission split must be between 0-100%")
        except (InvalidOperation, ValueError, TypeError):
            errors.append("Co-broking commission split is required")

    if transaction.commission_type not in [c.value for c in CommissionType]:
        errors.append("Commission type must be 'percentage' or 'fixed'")
    if not _positive(transaction.commission_value):
        errors.append("Commission value must be positive")
    if not _positive(transaction.commission_amount):
        errors.append("Commission amount must be positive")

    return errors


class _KeyedLocks:
    """Per-key in-process locks; entries are dropped once nobody holds or waits on them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key, timeout: float):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise ApprovalInProgressError(
                    f"Transaction {key} is being processed by another request; retry shortly"
                )
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


transaction_locks = _KeyedLocks()


@dataclass
class ApprovalResult:
    transaction_id: int
    status: str
    approver_id: int
    commission_amount: Decimal
    agent_share: Decimal
    company_share: Decimal
    approved_at: datetime
    entries: List[CommissionLedgerEntry] = field(default_factory=list)

    @property
    def total_bonus(self) -> Decimal:
        return sum(
            (e.amount for e in self.entries if e.role == LedgerEntryRole.LEADERSHIP_BONUS.value), Decimal("0")
        )

    @property
    def company_net_share(self) -> Decimal:
        return self.company_share - self.total_bonus


class ApprovalService:
    def __init__(self, db: Session, registry: TierRegistry = tier_registry):
        self.db = db
        # One registry reference for the life of the service, so a single
        # approval never sees two tier configurations.
        self.registry = registry
        self.resolver = RecruiterGraphResolver(db)
        self.calculator = CommissionCalculationService(db, registry)
        self.distributor = LeadershipBonusDistributor(self.resolver, registry)

    # ── Queries ──────────────────────────────────────────────────────

    def get_transaction(self, transaction_id: int) -> Transaction:
        transaction = self.db.get(Transaction, transaction_id)
        if not transaction:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction

    def ledger_entries(self, transaction_id: int) -> List[CommissionLedgerEntry]:
        return (
            self.db.query(CommissionLedgerEntry)
            .filter(CommissionLedgerEntry.transaction_id == transaction_id)
            .order_by(CommissionLedgerEntry.hop, CommissionLedgerEntry.id)
            .all()
        )

    # ── Transitions ──────────────────────────────────────────────────

    def submit(self, transaction_id: int, actor_id: int) -> Transaction:
        """Agent sends a draft to the approval queue."""
        transaction = self.get_transaction(transaction_id)
        assert_transition(transaction.status, TransactionStatus.SUBMITTED)

        errors = validate_for_submission(transaction)
        if errors:
            logger.info(f"Transaction {transaction_id} failed submission checks: {errors}")
            raise ValidationError("Transaction is not ready for submission", errors=errors)

        self._transition(transaction, TransactionStatus.SUBMITTED, actor_id)
        transaction.submitted_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(transaction)

        logger.info(f"Transaction {transaction_id} submitted by agent {actor_id}")
        return transaction

    def update_draft(self, transaction_id: int, changes: Dict) -> Transaction:
        """Edit a draft in place. Anything past draft is frozen."""
        transaction = self._load_for_update(transaction_id)
        self._assert_draft(transaction, "edited")

        for field_name, value in changes.items():
            setattr(transaction, field_name, value)
        self.db.commit()
        self.db.refresh(transaction)

        logger.info(f"Draft transaction {transaction_id} updated: {sorted(changes)}")
        return transaction

    def delete_draft(self, transaction_id: int):
        transaction = self._load_for_update(transaction_id)
        self._assert_draft(transaction, "deleted")

        self.db.delete(transaction)
        self.db.commit()
        logger.info(f"Draft transaction {transaction_id} deleted")

    def start_review(self, transaction_id: int, reviewer_id: int) -> Transaction:
        with transaction_locks.hold(transaction_id, settings.APPROVAL_LOCK_TIMEOUT_SECONDS):
            transaction = self.get_transaction(transaction_id)
            self._open_review(transaction, reviewer_id)
            self.db.commit()
            self.db.refresh(transaction)
        return transaction

    def reject(self, transaction_id: int, reviewer_id: int, reason: str) -> Transaction:
        if _is_blank(reason):
            raise ValidationError("A rejection reason is required")
        reason = reason.strip()

        with transaction_locks.hold(transaction_id, settings.APPROVAL_LOCK_TIMEOUT_SECONDS):
            transaction = self._load_for_update(transaction_id)
            self._transition(transaction, TransactionStatus.REJECTED, reviewer_id, notes=reason)
            now = datetime.now(timezone.utc)
            transaction.rejection_reason = reason
            transaction.reviewed_by_id = reviewer_id
            transaction.reviewed_at = now
            self.db.commit()
            self.db.refresh(transaction)

        logger.info(f"Transaction {transaction_id} rejected by {reviewer_id}: {reason}")
        return transaction

    def complete(self, transaction_id: int, actor_id: Optional[int] = None, notes: str = None) -> Transaction:
        with transaction_locks.hold(transaction_id, settings.APPROVAL_LOCK_TIMEOUT_SECONDS):
            transaction = self._load_for_update(transaction_id)
            self._transition(transaction, TransactionStatus.COMPLETED, actor_id, notes=notes)
            transaction.completed_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(transaction)

        logger.info(f"Transaction {transaction_id} completed")
        return transaction

    def approve_transaction(self, transaction_id: int, approver_id: int, notes: str = None) -> ApprovalResult:
        """
        Approve a transaction and write its commission ledger.

        Raises AlreadyProcessedError if the transaction was approved before;
        nothing is paid twice. Any failure rolls back every write and leaves
        the transaction where it was.
        """
        with transaction_locks.hold(transaction_id, settings.APPROVAL_LOCK_TIMEOUT_SECONDS):
            try:
                result = self._approve(transaction_id, approver_id, notes)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Transaction {transaction_id}: ledger entries already exist, approval refused")
                raise AlreadyProcessedError(f"Transaction {transaction_id} has already been approved")
            except CommissionEngineError as e:
                self.db.rollback()
                if e.data_integrity:
                    logger.error(f"Approval of transaction {transaction_id} blocked: {e}")
                raise
            except Exception:
                self.db.rollback()
                logger.error(f"Approval of transaction {transaction_id} failed", exc_info=True)
                raise

        logger.info(
            f"Transaction {transaction_id} approved by {approver_id}: "
            f"agent share {result.agent_share}, company share {result.company_share}, "
            f"{len(result.entries) - 1} leadership bonus entries totalling {result.total_bonus}"
        )
        return result

    def bulk_review(
        self,
        transaction_ids: List[int],
        reviewer_id: int,
        action: str,
        notes: str = None,
        reason: str = None,
    ) -> List[Dict]:
        """
        Approve or reject several transactions, one database transaction per
        id. A failed id is rolled back on its own and reported; the ids around
        it are unaffected.
        """
        if action not in BULK_ACTIONS:
            raise ValidationError(f"Bulk action must be one of {', '.join(BULK_ACTIONS)}, got {action!r}")
        if action == "reject" and _is_blank(reason):
            raise ValidationError("A rejection reason is required")

        results = []
        for transaction_id in transaction_ids:
            try:
                if action == "approve":
                    outcome = self.approve_transaction(transaction_id, reviewer_id, notes=notes)
                else:
                    outcome = self.reject(transaction_id, reviewer_id, reason)
            except CommissionEngineError as e:
                self.db.rollback()
                results.append({
                    "transaction_id": transaction_id,
                    "success": False,
                    "status": None,
                    "error_type": e.error_type,
                    "detail": e.message,
                })
                continue

            results.append({
                "transaction_id": transaction_id,
                "success": True,
                "status": outcome.status,
                "error_type": None,
                "detail": None,
            })

        succeeded = len([r for r in results if r["success"]])
        logger.info(
            f"Bulk {action} by {reviewer_id}: {succeeded} of {len(results)} transactions processed"
        )
        return results

    def queue_stats(
        self,
        agent_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict:
        """Transaction counts by status and ledger totals by role, filtered by transaction date."""
        filters = []
        if agent_id is not None:
            filters.append(Transaction.agent_id == agent_id)
        if start is not None:
            filters.append(Transaction.transaction_date >= start)
        if end is not None:
            filters.append(Transaction.transaction_date < end)

        counts = dict(
            self.db.query(Transaction.status, func.count(Transaction.id))
            .filter(*filters)
            .group_by(Transaction.status)
            .all()
        )
        by_status = {s.value: counts.get(s.value, 0) for s in TransactionStatus}

        totals = dict(
            self.db.query(CommissionLedgerEntry.role, func.sum(CommissionLedgerEntry.amount))
            .join(Transaction, CommissionLedgerEntry.transaction_id == Transaction.id)
            .filter(*filters)
            .group_by(CommissionLedgerEntry.role)
            .all()
        )

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "pending_review": by_status[TransactionStatus.SUBMITTED.value]
            + by_status[TransactionStatus.UNDER_REVIEW.value],
            "own_commission_total": Decimal(str(totals.get(LedgerEntryRole.OWN_COMMISSION.value) or 0)),
            "leadership_bonus_total": Decimal(str(totals.get(LedgerEntryRole.LEADERSHIP_BONUS.value) or 0)),
        }

    # ── Internals ────────────────────────────────────────────────────

    def _assert_draft(self, transaction: Transaction, verb: str):
        if transaction.status != TransactionStatus.DRAFT.value:
            raise InvalidTransitionError(
                transaction.status,
                TransactionStatus.DRAFT.value,
                f"Only draft transactions can be {verb}; transaction {transaction.id} is '{transaction.status}'",
            )

    def _approve(self, transaction_id: int, approver_id: int, notes: str) -> ApprovalResult:
        self._apply_statement_timeout()
        transaction = self._load_for_update(transaction_id)
        self.resolver.get_agent(approver_id)

        already_paid = (
            self.db.query(CommissionLedgerEntry.id)
            .filter(CommissionLedgerEntry.transaction_id == transaction.id)
            .first()
        )
        if already_paid or transaction.status in (
            TransactionStatus.APPROVED.value,
            TransactionStatus.COMPLETED.value,
        ):
            raise AlreadyProcessedError(f"Transaction {transaction_id} has already been approved")

        if (
            transaction.status == TransactionStatus.SUBMITTED.value
            and settings.AUTO_OPEN_REVIEW_ON_APPROVE
        ):
            self._open_review(transaction, approver_id, notes="Review opened on approval")

        assert_transition(transaction.status, TransactionStatus.APPROVED)

        agent = self.resolver.get_agent(transaction.agent_id)
        split = self.calculator.compute_split(transaction.commission_amount, agent.agent_tier)

        entries = [
            self.calculator.own_commission_entry(
                transaction.id, agent.id, agent.agent_tier, split, created_by_id=approver_id
            )
        ]
        entries.extend(
            self.distributor.distribute_bonus(
                transaction.id, agent.id, split.company_share, created_by_id=approver_id
            )
        )
        self.db.add_all(entries)

        now = datetime.now(timezone.utc)
        self._transition(transaction, TransactionStatus.APPROVED, approver_id, notes=notes)
        transaction.approved_at = now
        transaction.reviewed_at = now
        transaction.reviewed_by_id = approver_id
        if notes:
            transaction.review_notes = notes
        self.db.flush()

        return ApprovalResult(
            transaction_id=transaction.id,
            status=transaction.status,
            approver_id=approver_id,
            commission_amount=split.commission_amount,
            agent_share=split.agent_share,
            company_share=split.company_share,
            approved_at=now,
            entries=entries,
        )

    def _open_review(self, transaction: Transaction, reviewer_id: int, notes: str = None):
        self._transition(transaction, TransactionStatus.UNDER_REVIEW, reviewer_id, notes=notes)
        transaction.reviewed_by_id = reviewer_id
        transaction.reviewed_at = datetime.now(timezone.utc)

    def _transition(self, transaction: Transaction, target: TransactionStatus, actor_id, notes: str = None):
        """Validate, then move. Nothing changes when the move is not allowed."""
        current = transaction.status
        assert_transition(current, target)

        transaction.status = target.value
        self.db.add(
            TransactionStatusChange(
                transaction_id=transaction.id,
                from_status=current,
                to_status=target.value,
                changed_by_id=actor_id,
                notes=notes,
            )
        )

    def _load_for_update(self, transaction_id: int) -> Transaction:
        transaction = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not transaction:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction

    def _apply_statement_timeout(self):
        if self.db.get_bind().dialect.name == "postgresql":
            timeout_ms = int(settings.DB_STATEMENT_TIMEOUT_MS)
            self.db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
