"""
ApprovalRequest model for mutations held for reviewer sign-off.

A request stores:
- What kind of mutation was proposed (action_type)
- A snapshot of the target entity and its key at submission (original_data)
- The fields to apply on approval (proposed_data)
- Who asked, who reviewed, and the outcome

Lifecycle: PENDING transitions exactly once to APPROVED or REJECTED.
"""

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from .base import BaseModel, TenantScopedMixin
from .enums import ApprovalStatus


class ApprovalRequest(TenantScopedMixin, BaseModel):
    """
    ApprovalRequest model.

    Attributes:
        action_type: ActionType value
        reason_for_request: Free-text justification from the submitter
        original_data: Entity snapshot plus identifying key
        proposed_data: Patch fields (empty for deletes)
        submitted_by: User id of the submitter
        review_status: ApprovalStatus value
        reviewed_by: User id of the reviewer
        review_comment: Optional reviewer comment
        reviewed_at: When the review happened
    """

    __tablename__ = "approval_requests"

    action_type = Column(String(32), nullable=False)
    reason_for_request = Column(Text, nullable=False)
    original_data = Column(JSON, nullable=False, default=dict)
    proposed_data = Column(JSON, nullable=False, default=dict)

    submitted_by = Column(String(64), nullable=False)
    review_status = Column(String(16), nullable=False, default=ApprovalStatus.PENDING.value)
    reviewed_by = Column(String(64), nullable=True)
    review_comment = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_approval_tenant_status", "tenant_id", "review_status"),
        Index("idx_approval_created", "created_at"),
    )

    @property
    def is_pending(self) -> bool:
        return self.review_status == ApprovalStatus.PENDING.value

    def __repr__(self) -> str:
        """String representation of approval request."""
        return (
            f"ApprovalRequest(id={self.id}, action_type='{self.action_type}', "
            f"review_status='{self.review_status}')"
        )
