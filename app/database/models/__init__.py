from app.database.models.user_model import User, UserDocuments, FileDocument, ReferenceDocument, DOCUMENT_SLOTS
from app.database.models.loan_model import Loan
from app.database.models.emi_model import Emi, EMI_TRANSITIONS
from app.database.models.audit_log_model import AuditLog
