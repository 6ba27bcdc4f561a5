from centerdesk.core.models.center import Center
from centerdesk.core.models.student import Student
from centerdesk.core.models.teacher import Teacher
from centerdesk.core.models.subject import StudentSubjectEnrollment, Subject
from centerdesk.core.models.student_fee import StudentFee
from centerdesk.core.models.payment import Payment, PaymentAllocation, PaymentReversal, Refund
from centerdesk.core.models.audit_log import AuditLog
from centerdesk.core.models.portal_access_token import PortalAccessToken
from centerdesk.core.models.referral import Referral, ReferralCode

__all__ = [
    "Center",
    "Student",
    "Teacher",
    "Subject",
    "StudentSubjectEnrollment",
    "StudentFee",
    "Payment",
    "PaymentAllocation",
    "PaymentReversal",
    "Refund",
    "AuditLog",
    "PortalAccessToken",
    "ReferralCode",
    "Referral",
]
