from salesdesk.activities.models import Activity
from salesdesk.attachments.models import Attachment
from salesdesk.audit_logs.models import AuditLog
from salesdesk.branches.models import Branch
from salesdesk.customers.models import Customer
from salesdesk.daily_reports.models import DailyReport, daily_report_payment_customers
from salesdesk.deals.models import Deal
from salesdesk.follow_ups.models import FollowUp
from salesdesk.leads.models import Lead, LeadTransferRequest
from salesdesk.notes.models import Note
from salesdesk.payment_requests.models import PaymentRequest
from salesdesk.payments.models import Payment
from salesdesk.targets.models import Target
from salesdesk.users.models import User

__all__ = [
    "Activity",
    "Attachment",
    "AuditLog",
    "Branch",
    "Customer",
    "DailyReport",
    "Deal",
    "FollowUp",
    "Lead",
    "LeadTransferRequest",
    "Note",
    "Payment",
    "PaymentRequest",
    "Target",
    "User",
    "daily_report_payment_customers",
]
