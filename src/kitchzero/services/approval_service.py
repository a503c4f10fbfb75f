"""
Approval Service - Two-phase (propose, review, apply) mutations.

Staff edits and deletions of inventory batches and waste logs are held as
ApprovalRequest rows. A reviewer then approves or rejects each request
exactly once. Approval applies the stored action in the same transaction
that flips the status, so a failed apply leaves the request PENDING and
retryable.

The stored patch is re-validated when the request is reviewed. There is no
optimistic-concurrency guard: if the entity changed after submission the
drift is logged and the patch is still applied.
"""

import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kitchzero.models import ActionType, ApprovalRequest, ApprovalStatus
from kitchzero.utils.datetime_utils import utc_now
from kitchzero.utils.validators import sanitize_string, validate_required_string
from .approval_actions import (
    ApprovalAction,
    DeleteInventory,
    DeleteWasteLog,
    InventoryPatch,
    UpdateInventory,
    UpdateWasteLog,
    WasteLogPatch,
    action_from_request,
    apply_action,
    proposed_data,
    target_key,
)
from .database import session_scope
from .dto import PaginatedResult, PaginationParams, paginate
from .exceptions import (
    AlreadyReviewed,
    ApprovalActionFailed,
    ApprovalRequestNotFound,
    DatabaseError,
    ServiceError,
    ValidationError as ServiceValidationError,
)
from .inventory_item_service import get_inventory_item
from .logging_utils import get_service_logger, log_operation
from .waste_service import get_waste_log

logger = get_service_logger(__name__)


def _load_target(sess: Session, action: ApprovalAction, tenant_id: str):
    match action:
        case UpdateInventory(item_id=item_id) | DeleteInventory(item_id=item_id):
            return get_inventory_item(item_id, tenant_id, session=sess)
        case UpdateWasteLog(waste_log_id=waste_log_id) | DeleteWasteLog(
            waste_log_id=waste_log_id
        ):
            return get_waste_log(waste_log_id, tenant_id, session=sess)
        case _:
            raise TypeError(f"Unsupported approval action: {action!r}")


def _drifted_fields(original: Dict[str, Any], entity) -> list:
    current = entity.to_dict()
    columns = set(entity.__table__.columns.keys())
    return sorted(
        key
        for key, value in original.items()
        if key in columns and key != "updated_at" and current.get(key) != value
    )


# ============================================================================
# Submission
# ============================================================================


def submit_approval_request(
    action: ApprovalAction,
    reason: str,
    submitted_by: str,
    tenant_id: str,
    branch_id: str,
    *,
    session: Optional[Session] = None,
) -> ApprovalRequest:
    """
    Hold a mutation for reviewer approval.

    Args:
        action: UpdateInventory, DeleteInventory, UpdateWasteLog or DeleteWasteLog
        reason: Why the change is needed
        submitted_by: User id of the submitter
        tenant_id: Owning tenant
        branch_id: Branch the request belongs to
        session: Optional database session

    Returns:
        ApprovalRequest: The new PENDING request

    Raises:
        ValidationError: If reason or submitter is missing, or the patch is invalid
        InventoryItemNotFound / WasteLogNotFound: If the target does not exist
            for the tenant
        DatabaseError: If database operation fails
    """
    errors = []
    for value, label in ((reason, "Reason"), (submitted_by, "Submitted By")):
        is_valid, error = validate_required_string(value, label)
        if not is_valid:
            errors.append(error)
    if errors:
        raise ServiceValidationError(errors)

    match action:
        case UpdateInventory(patch=patch) | UpdateWasteLog(patch=patch):
            patch.validate()

    def _impl(sess: Session) -> ApprovalRequest:
        entity = _load_target(sess, action, tenant_id)

        request = ApprovalRequest(
            tenant_id=tenant_id,
            branch_id=branch_id,
            action_type=action.action_type.value,
            reason_for_request=sanitize_string(reason),
            original_data={**entity.to_dict(), **target_key(action)},
            proposed_data=proposed_data(action),
            submitted_by=submitted_by,
            review_status=ApprovalStatus.PENDING.value,
        )
        sess.add(request)
        sess.flush()

        log_operation(
            logger,
            operation="submit_approval_request",
            outcome="success",
            tenant_id=tenant_id,
            request_id=request.id,
            action_type=request.action_type,
            submitted_by=submitted_by,
        )
        return request

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to submit approval request", original_error=e)


def submit_inventory_update_request(
    item_id: int,
    updates: Dict[str, Any],
    reason: str,
    submitted_by: str,
    tenant_id: str,
    branch_id: str,
    session: Optional[Session] = None,
) -> ApprovalRequest:
    """Request a change to an inventory batch (cost cannot be changed)."""
    action = UpdateInventory(item_id, InventoryPatch.from_dict(updates))
    return submit_approval_request(
        action, reason, submitted_by, tenant_id, branch_id, session=session
    )


def submit_inventory_delete_request(
    item_id: int,
    reason: str,
    submitted_by: str,
    tenant_id: str,
    branch_id: str,
    session: Optional[Session] = None,
) -> ApprovalRequest:
    return submit_approval_request(
        DeleteInventory(item_id), reason, submitted_by, tenant_id, branch_id, session=session
    )


def submit_waste_log_update_request(
    waste_log_id: int,
    updates: Dict[str, Any],
    reason: str,
    submitted_by: str,
    tenant_id: str,
    branch_id: str,
    session: Optional[Session] = None,
) -> ApprovalRequest:
    """Request a change to a waste log's reason, tags, quantity or cost."""
    action = UpdateWasteLog(waste_log_id, WasteLogPatch.from_dict(updates))
    return submit_approval_request(
        action, reason, submitted_by, tenant_id, branch_id, session=session
    )


def submit_waste_log_delete_request(
    waste_log_id: int,
    reason: str,
    submitted_by: str,
    tenant_id: str,
    branch_id: str,
    session: Optional[Session] = None,
) -> ApprovalRequest:
    return submit_approval_request(
        DeleteWasteLog(waste_log_id), reason, submitted_by, tenant_id, branch_id, session=session
    )


# ============================================================================
# Review
# ============================================================================


def review_approval_request(
    request_id: int,
    decision: Union[ApprovalStatus, str],
    reviewed_by: str,
    tenant_id: str,
    review_comment: Optional[str] = None,
    *,
    session: Optional[Session] = None,
) -> ApprovalRequest:
    """
    Approve or reject a pending request.

    On approval the stored action is rebuilt, its patch re-validated, and
    applied before the status is flipped. When no session is given the
    whole review runs in one transaction; a caller passing its own session
    must roll it back if this raises.

    Args:
        request_id: Approval request identifier
        decision: ApprovalStatus.APPROVED or ApprovalStatus.REJECTED
        reviewed_by: User id of the reviewer
        tenant_id: Reviewer's tenant
        review_comment: Optional comment
        session: Optional database session

    Returns:
        ApprovalRequest: The reviewed request

    Raises:
        ValidationError: If the decision is not APPROVED/REJECTED or the
            reviewer is missing
        ApprovalRequestNotFound: If the request does not exist for the tenant
        AlreadyReviewed: If the request is no longer PENDING
        ApprovalActionFailed: If the approved mutation cannot be applied
        DatabaseError: If database operation fails
    """
    try:
        decision = ApprovalStatus(decision)
    except ValueError:
        raise ServiceValidationError([f"Invalid review decision: {decision}"])
    if decision == ApprovalStatus.PENDING:
        raise ServiceValidationError(["Review decision must be APPROVED or REJECTED"])
    is_valid, error = validate_required_string(reviewed_by, "Reviewed By")
    if not is_valid:
        raise ServiceValidationError([error])

    def _impl(sess: Session) -> ApprovalRequest:
        request = (
            ApprovalRequest.for_tenant(sess, tenant_id)
            .filter(ApprovalRequest.id == request_id)
            .with_for_update()
            .first()
        )
        if not request:
            raise ApprovalRequestNotFound(request_id)

        if not request.is_pending:
            log_operation(
                logger,
                operation="review_approval_request",
                outcome="already_reviewed",
                level=logging.WARNING,
                tenant_id=tenant_id,
                request_id=request_id,
                review_status=request.review_status,
            )
            raise AlreadyReviewed(request_id, request.review_status)

        if decision == ApprovalStatus.APPROVED:
            try:
                action = action_from_request(request)
                target = _load_target(sess, action, tenant_id)
                drifted = _drifted_fields(request.original_data or {}, target)
                if drifted:
                    log_operation(
                        logger,
                        operation="review_approval_request",
                        outcome="snapshot_drift",
                        level=logging.WARNING,
                        tenant_id=tenant_id,
                        request_id=request_id,
                        drifted_fields=drifted,
                    )
                apply_action(action, tenant_id, session=sess)
            except (ServiceError, SQLAlchemyError) as e:
                log_operation(
                    logger,
                    operation="review_approval_request",
                    outcome="apply_failed",
                    level=logging.ERROR,
                    tenant_id=tenant_id,
                    request_id=request_id,
                    action_type=request.action_type,
                    error=str(e),
                )
                raise ApprovalActionFailed(request_id, request.action_type, e) from e

        request.review_status = decision.value
        request.reviewed_by = reviewed_by
        request.review_comment = sanitize_string(review_comment)
        request.reviewed_at = utc_now()
        sess.flush()

        log_operation(
            logger,
            operation="review_approval_request",
            outcome=decision.value.lower(),
            tenant_id=tenant_id,
            request_id=request_id,
            action_type=request.action_type,
            reviewed_by=reviewed_by,
        )
        return request

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to review approval request {request_id}", original_error=e)


# ============================================================================
# Queries
# ============================================================================


def get_approval_requests(
    tenant_id: str,
    branch_id: Optional[str] = None,
    *,
    status: Optional[str] = None,
    action_type: Optional[str] = None,
    submitted_by: Optional[str] = None,
    pagination: Optional[PaginationParams] = None,
    session: Optional[Session] = None,
) -> PaginatedResult:
    """
    List approval requests, newest first.

    Args:
        tenant_id: Owning tenant
        branch_id: Restrict to one branch
        status: ApprovalStatus value
        action_type: ActionType value
        submitted_by: Restrict to one submitter
        pagination: Page to return (default page size when None)

    Returns:
        PaginatedResult of ApprovalRequest
    """
    if pagination is None:
        pagination = PaginationParams()

    def _impl(sess: Session) -> PaginatedResult:
        query = ApprovalRequest.for_tenant(sess, tenant_id, branch_id)
        if status:
            query = query.filter(ApprovalRequest.review_status == ApprovalStatus(status).value)
        if action_type:
            query = query.filter(ApprovalRequest.action_type == ActionType(action_type).value)
        if submitted_by:
            query = query.filter(ApprovalRequest.submitted_by == submitted_by)
        query = query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
        return paginate(query, pagination)

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_approval_request(
    request_id: int, tenant_id: str, session: Optional[Session] = None
) -> ApprovalRequest:
    """
    Raises:
        ApprovalRequestNotFound: If the request does not exist for the tenant
    """

    def _impl(sess: Session) -> ApprovalRequest:
        request = (
            ApprovalRequest.for_tenant(sess, tenant_id)
            .filter(ApprovalRequest.id == request_id)
            .first()
        )
        if not request:
            raise ApprovalRequestNotFound(request_id)
        return request

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_pending_requests_count(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> int:
    def _impl(sess: Session) -> int:
        return (
            ApprovalRequest.for_tenant(sess, tenant_id, branch_id)
            .filter(ApprovalRequest.review_status == ApprovalStatus.PENDING.value)
            .count()
        )

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_approval_stats(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> Dict[str, Any]:
    """
    Count requests by review status and by action type.

    Returns:
        Dict with total, pending, approved, rejected and by_action_type
        (action type -> count)
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        base = ApprovalRequest.for_tenant(sess, tenant_id, branch_id)

        by_status = dict(
            base.with_entities(ApprovalRequest.review_status, func.count(ApprovalRequest.id))
            .group_by(ApprovalRequest.review_status)
            .all()
        )
        by_action_type = dict(
            base.with_entities(ApprovalRequest.action_type, func.count(ApprovalRequest.id))
            .group_by(ApprovalRequest.action_type)
            .all()
        )

        return {
            "total": sum(by_status.values()),
            "pending": by_status.get(ApprovalStatus.PENDING.value, 0),
            "approved": by_status.get(ApprovalStatus.APPROVED.value, 0),
            "rejected": by_status.get(ApprovalStatus.REJECTED.value, 0),
            "by_action_type": by_action_type,
        }

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
