"""Request and result models for GHL operations.

Results are structured objects: ordinary provider failures come back as
`success=False` with an `error` message, never as exceptions.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class MessageRequest(BaseModel):
    """Transactional email to send through the provider."""

    to: str = Field(..., description="Recipient email address")
    subject: str = Field(..., description="Subject line")
    html: Optional[str] = Field(None, description="HTML body")
    text: Optional[str] = Field(None, description="Plain-text body")
    from_address: Optional[str] = Field(None, alias="from", description="Sender address")
    from_name: Optional[str] = Field(None, description="Sender display name")
    reply_to: Optional[str] = Field(None, description="Reply-To address (defaults to sender)")
    location_id: Optional[str] = Field(None, description="Explicit location override")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def message_body(self) -> str:
        return self.html or self.text or self.subject


class CustomerRecord(BaseModel):
    """Customer as known to the billing side."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    created: Optional[datetime] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def resolved_email(self) -> Optional[str]:
        return self.email or self.metadata.get("email")


class InvoiceRecord(BaseModel):
    """Invoice as known to the billing side. Amounts are in minor units."""

    id: str
    number: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    amount_due: int = 0
    amount_paid: int = 0
    currency: str = "gbp"
    due_date: Optional[datetime] = None
    hosted_invoice_url: Optional[str] = None
    customer: Optional[CustomerRecord] = None

    @property
    def display_number(self) -> str:
        return self.number or self.id

    @property
    def currency_code(self) -> str:
        return (self.currency or "gbp").upper()

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"


class WorkflowTriggerRequest(BaseModel):
    """Invoice data written onto a contact to fire a provider-side workflow."""

    to: str
    invoice_number: str
    invoice_amount: str
    invoice_due_date: str
    invoice_pay_link: str
    customer_name: Optional[str] = None
    location_id: Optional[str] = None

    def custom_fields(self) -> Dict[str, str]:
        return {
            "Invoice Number": self.invoice_number,
            "Invoice Amount": self.invoice_amount,
            "Invoice Due Date": self.invoice_due_date,
            "Invoice Pay Link": self.invoice_pay_link,
        }


# =============================================================================
# Results
# =============================================================================


class OperationResult(BaseModel):
    success: bool
    error: Optional[str] = None


class SendMessageResult(OperationResult):
    message_id: Optional[str] = None


class ContactSyncResult(OperationResult):
    contact_id: Optional[str] = None


class InvoiceSyncResult(OperationResult):
    opportunity_id: Optional[str] = None


class PaymentNotificationResult(OperationResult):
    pass


class MessageStatusResult(OperationResult):
    status: Optional[str] = None


class WorkflowTriggerResult(OperationResult):
    contact_id: Optional[str] = None


class ContactListResult(OperationResult):
    contacts: List[Dict[str, Any]] = Field(default_factory=list)


class ConnectionReport(OperationResult):
    """Operator-facing summary of the resolved context."""

    token_preview: Optional[str] = None
    token_type: Optional[str] = None
    location_id: Optional[str] = None
    location_source: Optional[str] = None
    environment: Optional[str] = None
    base_url: Optional[str] = None
    versioned_base_url: Optional[str] = None
    auth_header: Optional[str] = None
    auth_strategy: Optional[str] = None
    diagnostics: List[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=datetime.now)

    @field_serializer("checked_at")
    def serialize_datetime(self, v: datetime) -> str:
        """Serialize datetime to ISO format."""
        return v.isoformat()

    @property
    def next_steps(self) -> str:
        if self.location_id:
            return "Ready to send emails. Location ID resolved."
        return "Configure REVIVE_GHL_LOCATION_ID or regenerate a token tied to a location."
