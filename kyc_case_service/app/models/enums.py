from enum import Enum


class CaseStatus(str, Enum):
    DRAFT = "Draft"
    PENDING_CHECKER_REVIEW = "Pending Checker Review"
    PENDING_COMPLIANCE_REVIEW = "Pending Compliance Review"
    PENDING_GM_APPROVAL = "Pending GM Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected" # Rejections send the case back to DRAFT; kept for stored records.
    ACTIVE = "Active"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class UserRole(str, Enum):
    RM = "RM"
    CHECKER = "Checker"
    COMPLIANCE = "Compliance"
    GM = "GM"
    ADMIN = "Admin"


class SubmissionStatus(str, Enum):
    MISSING = "Missing"
    PENDING_CHECKER_VERIFICATION = "Pending Checker Verification"
    PENDING_COMPLIANCE_VERIFICATION = "Pending Compliance Verification"
    VERIFIED = "Verified"
    REJECTED = "Rejected"
    EXPIRED = "Expired"


class EntityType(str, Enum):
    INDIVIDUAL_ACCOUNT = "Individual Account"
    NON_LISTED_COMPANY = "Non-Listed Company"
    LISTED_COMPANY = "Listed Company"
    PARTNERSHIP = "Partnership"
    TRUST = "Trust"
    SOCIETY = "Society / Association / Club"
    CHARITY = "Charity"
    SOLE_PROPRIETORSHIP = "Sole-Proprietorship"
    GOVERNMENT_ENTITY = "Government Entity"
    FINANCIAL_INSTITUTION = "Financial Institution"


class PartyType(str, Enum):
    INDIVIDUAL = "Individual"
    CORPORATE_ENTITY = "Corporate Entity"


class ResidencyStatus(str, Enum):
    SINGAPOREAN_PR = "Singaporean/PR"
    FOREIGNER = "Foreigner"


class AccountStatus(str, Enum):
    PROPOSED = "Proposed"
    PENDING_CHECKER_REVIEW = "Pending Checker Review"
    PENDING_COMPLIANCE_REVIEW = "Pending Compliance Review"
    ACTIVE = "Active"
    REJECTED = "Rejected"
    DORMANT = "Dormant"
    CLOSED = "Closed"


class AccountType(str, Enum):
    CURRENT = "Current"
    SAVINGS = "Savings"
    FIXED_DEPOSIT = "Fixed Deposit"
    SECURITIES = "Securities"
    LOAN = "Loan"


class CasePriority(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"


class RequirementType(str, Enum):
    STANDARD = "Standard"
    RISK_BASED = "Risk-Based"
    AD_HOC = "Ad-Hoc"


class SubmissionMethod(str, Enum):
    UPLOAD = "Upload"
    SCAN = "Scan"
    EMAIL = "Email"
    API = "API"


class ActivityActionType(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    SUBMIT = "Submit"
    APPROVE = "Approve"
    REJECT = "Reject"
    COMMENT = "Comment"
    UPLOAD = "Upload"
    VIEW = "View"


class ActivityEntityType(str, Enum):
    CASE = "Case"
    PARTY = "Party"
    ACCOUNT = "Account"
    DOCUMENT = "Document"
