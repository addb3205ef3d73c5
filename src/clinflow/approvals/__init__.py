from clinflow.approvals.manager import ApprovalManager
from clinflow.approvals.models import Approval, ApprovalComment

__all__ = ["Approval", "ApprovalComment", "ApprovalManager"]
