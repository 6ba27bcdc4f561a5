from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    CENTER_ADMIN = "center_admin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STAFF = "staff"


class FeeType(str, Enum):
    tuition = "tuition"
    registration = "registration"
    other = "other"


class FeeStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"


class PaymentStatus(str, Enum):
    completed = "completed"
    reversed = "reversed"


class RefundReason(str, Enum):
    relocation = "relocation"
    medical = "medical"
    financial_hardship = "financial_hardship"
    schedule_conflicts = "schedule_conflicts"
    dissatisfaction = "dissatisfaction"
    other = "other"


class PaymentMethod(str, Enum):
    CASH = "cash"
    EFT = "eft"
    CARD = "card"
    DEBIT_ORDER = "debit_order"
    OTHER = "other"


class AuditAction(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"


class AuditEntityType(str, Enum):
    student = "student"
    teacher = "teacher"
    payment = "payment"
    refund = "refund"
    user = "user"
    subject = "subject"
    fee = "fee"
    hostel_block = "hostel_block"
    hostel_room = "hostel_room"
    hostel_allocation = "hostel_allocation"
    vehicle = "vehicle"
    transport_route = "transport_route"
    book = "book"
    book_borrowing = "book_borrowing"
    center = "center"


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class PortalEntityType(str, Enum):
    student = "student"
    teacher = "teacher"
    parent = "parent"


class ReferralStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    rewarded = "rewarded"
