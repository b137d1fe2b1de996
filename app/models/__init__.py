"""Import all models so SQLModel.metadata picks them up."""

from app.models.api_token import ApiToken
from app.models.company import Company, CompanyCreate, CompanyPaymentStatus, CompanyRead
from app.models.customer import Customer, CustomerCreate, CustomerRead, CustomerStatus
from app.models.identity import CustomerIdentity, PortalIdentity, PortalRole
from app.models.payment import Payment, PaymentMethod, PaymentRead, PaymentStatus
from app.models.plan import (
    Plan,
    PlanAddOn,
    PlanAddOnCreate,
    PlanAddOnRead,
    PlanCreate,
    PlanRead,
)
from app.models.provisioning import (
    Invoice,
    InvoiceRead,
    InvoiceStatus,
    MemberAccount,
    MemberAccountRead,
    MemberAccountStatus,
    Subscription,
    SubscriptionRead,
    SubscriptionStatus,
)
from app.models.tenant import Tenant, TenantRead
from app.models.user import User, UserRead, UserRole
from app.models.workflow_record import (
    ProvisioningSnapshot,
    WorkflowRecord,
    WorkflowRecordRead,
)

__all__ = [
    "ApiToken",
    "Company",
    "CompanyCreate",
    "CompanyPaymentStatus",
    "CompanyRead",
    "Customer",
    "CustomerCreate",
    "CustomerIdentity",
    "CustomerRead",
    "CustomerStatus",
    "Invoice",
    "InvoiceRead",
    "InvoiceStatus",
    "MemberAccount",
    "MemberAccountRead",
    "MemberAccountStatus",
    "Payment",
    "PaymentMethod",
    "PaymentRead",
    "PaymentStatus",
    "Plan",
    "PlanAddOn",
    "PlanAddOnCreate",
    "PlanAddOnRead",
    "PlanCreate",
    "PlanRead",
    "PortalIdentity",
    "PortalRole",
    "ProvisioningSnapshot",
    "Subscription",
    "SubscriptionRead",
    "SubscriptionStatus",
    "Tenant",
    "TenantRead",
    "User",
    "UserRead",
    "UserRole",
    "WorkflowRecord",
    "WorkflowRecordRead",
]
