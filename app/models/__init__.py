# Automatically load all models so metadata knows them
from app.models.accounting_model import ChartOfAccounts, GeneralLedger, JournalEntry, JournalLine
from app.models.loan_approval_log_model import LoanApprovalLog
from app.models.loan_model import Loan
from app.models.loan_product_model import LoanProduct
from app.models.loan_repayment_model import LoanRepayment
from app.models.member_model import Member
from app.models.membership_model import MembershipApprovalLog, MembershipRequest
from app.models.notification_model import Notification
from app.models.system_settings_model import SystemSetting
from app.models.transaction_model import Transaction
from app.models.user_model import User
from app.models.withdrawal_model import WithdrawalApprovalLog, WithdrawalRequest
