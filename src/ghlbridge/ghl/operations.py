"""Business operations against GoHighLevel.

GhlClient is the entry point used by the rest of the application:
- send_message: transactional email, trying several endpoint shapes
- sync_customer / sync_invoice: mirror billing records as contacts/opportunities
- notify_payment_success: note + tags on the paying contact
- get_message_status: delivery status of a sent email
- trigger_workflow_email: write invoice fields onto a contact to fire a workflow
- list_contacts / test_connection: support for sync jobs and diagnostics

Every operation resolves the context first, then works through the
dispatcher and fallback chains. Provider failures come back as result
objects with `success=False`; nothing here raises for ordinary flakiness.
"""

import logging
from typing import Any, Dict, List, Optional

from ghlbridge.config import AdapterConfig, config as settings
from ghlbridge.connectors.base import ConnectorError, RequestPolicy
from ghlbridge.connectors.http_client import AsyncHTTPClient, HTTPTransport
from ghlbridge.ghl.cache import ContextCache
from ghlbridge.ghl.context import ResolvedContext
from ghlbridge.ghl.dispatcher import RequestDispatcher
from ghlbridge.ghl.fallback import (
    FallbackChain,
    OperationCandidate,
    custom_field_candidates,
    tag_only_candidate,
)
from ghlbridge.ghl.hints import DEFAULT_HINTS, ResponseHints
from ghlbridge.ghl.models import (
    ConnectionReport,
    ContactListResult,
    ContactSyncResult,
    CustomerRecord,
    InvoiceRecord,
    InvoiceSyncResult,
    MessageRequest,
    MessageStatusResult,
    PaymentNotificationResult,
    SendMessageResult,
    WorkflowTriggerRequest,
    WorkflowTriggerResult,
)
from ghlbridge.ghl.resolver import ContextResolver
from ghlbridge.ghl.urls import SERVICES_BASE_URL, join_url, with_query

logger = logging.getLogger(__name__)

LOCATION_REQUIRED = (
    "Location ID is required. Provide locationId in options or set "
    "REVIVE_GHL_LOCATION_ID for PIT tokens."
)

WORKFLOW_TAG = "invoice:send"
CUSTOMER_TAG = "stripe-customer"
PAID_TAG = "paid-invoice"


def split_name(name: Optional[str], email: str, default: str) -> tuple:
    """(first, last) from a display name, else from the email's local part."""
    parts = (name or "").split()
    if parts:
        return parts[0], " ".join(parts[1:])
    local = email.split("@")[0]
    return local or default, ""


def _first_id(payload: Any, *keys: str) -> Optional[str]:
    """First non-empty id among top-level keys or `<key>.id` for nested objects."""
    if not isinstance(payload, dict):
        return None
    for key in keys:
        value = payload.get(key)
        if isinstance(value, dict):
            value = value.get("id")
        if isinstance(value, str) and value:
            return value
    return None


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


class GhlClient:
    """GoHighLevel operations with context resolution and fallbacks."""

    def __init__(
        self,
        adapter_config: Optional[AdapterConfig] = None,
        transport: Optional[HTTPTransport] = None,
        cache: Optional[ContextCache] = None,
        hints: ResponseHints = DEFAULT_HINTS,
        policy: Optional[RequestPolicy] = None,
        probe_deadline_seconds: Optional[float] = None,
        pipeline_id: Optional[str] = None,
    ):
        """Initialize the client.

        Args:
            adapter_config: Adapter configuration (defaults to the environment)
            transport: HTTP transport (defaults to AsyncHTTPClient)
            cache: Context cache (defaults to the process-wide cache)
            hints: Response wording rules for rotation and probing
            policy: Request policy for operation calls
            probe_deadline_seconds: Overall budget for one probe sweep
            pipeline_id: Pipeline to file synced opportunities under
        """
        self.config = adapter_config or settings.adapter()
        self.policy = policy or RequestPolicy.with_timeout(settings.request_timeout_seconds)
        self.transport = transport or AsyncHTTPClient(policy=self.policy)
        self.pipeline_id = pipeline_id

        self.resolver = ContextResolver(
            self.config,
            self.transport,
            cache=cache,
            hints=hints,
            probe_deadline_seconds=(
                probe_deadline_seconds
                if probe_deadline_seconds is not None
                else settings.probe_deadline_seconds
            ),
        )
        self.dispatcher = RequestDispatcher(self.transport, hints=hints, policy=self.policy)
        self.chain = FallbackChain(self.dispatcher)
        # Updates and status reads may legitimately answer without a JSON body.
        self.lenient_chain = FallbackChain(self.dispatcher, require_json=False)

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def _contacts_url(self, context: ResolvedContext, *path: str) -> str:
        return join_url(context.versioned_base_url, "/".join(("contacts", *path)))

    async def search_contact(self, context: ResolvedContext, email: str) -> Optional[Dict[str, Any]]:
        """First contact matching an email, or None."""
        url = with_query(
            self._contacts_url(context, "search"),
            {"locationId": context.location_id, "email": email},
        )
        result = await self.dispatcher.dispatch(context, "GET", url)
        logger.debug(f"Contact search -> {result.status_code} {result.status_text} ({result.auth_used.label})")

        if not result.ok:
            logger.warning(f"Contact search failed: {result.text[:200]}")
            return None

        data = result.json()
        contacts = data.get("contacts") if isinstance(data, dict) else None
        if isinstance(contacts, list) and contacts and isinstance(contacts[0], dict):
            return contacts[0]
        return None

    async def create_contact(self, context: ResolvedContext, payload: Dict[str, Any]) -> Optional[str]:
        """Create a contact and return its id, or None on failure."""
        url = with_query(self._contacts_url(context), {"locationId": context.location_id})
        outcome = await self.chain.run(
            context, [OperationCandidate(url=url, build_body=lambda: payload)], "contact create"
        )
        if not outcome.success:
            logger.warning(outcome.error)
            return None
        return _first_id(outcome.payload, "contact", "id")

    async def find_or_create_contact(
        self,
        context: ResolvedContext,
        email: str,
        name: Optional[str] = None,
        default_first_name: str = "Invoice",
    ) -> Optional[str]:
        """Search by email, creating the contact when none exists.

        Best-effort: concurrent callers may both create a contact.
        """
        existing = await self.search_contact(context, email)
        contact_id = _first_id(existing, "id")
        if contact_id:
            logger.info(f"Found existing contact {contact_id}")
            return contact_id

        first_name, last_name = split_name(name, email, default_first_name)
        payload = {"email": email, "firstName": first_name}
        if last_name:
            payload["lastName"] = last_name

        contact_id = await self.create_contact(context, payload)
        if contact_id:
            logger.info(f"Created contact {contact_id}")
        return contact_id

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def _message_candidates(
        self,
        context: ResolvedContext,
        request: MessageRequest,
        contact_id: Optional[str],
    ) -> List[OperationCandidate]:
        location = context.location_id
        versioned = context.versioned_base_url
        base_payload = _compact({
            "contactId": contact_id,
            "to": request.to,
            "subject": request.subject,
            "htmlBody": request.html,
            "textBody": request.text,
            "from": request.from_address,
            "fromName": request.from_name,
            "replyTo": request.reply_to or request.from_address,
        })

        candidates = []
        if contact_id:
            candidates.append(OperationCandidate(
                url=join_url(versioned, "conversations/messages"),
                label="conversation message",
                build_body=lambda: {
                    "locationId": location,
                    "contactId": contact_id,
                    "channel": "EMAIL",
                    "message": request.message_body,
                    "subject": request.subject,
                    "direction": "OUTBOUND",
                },
            ))
        candidates.extend([
            OperationCandidate(
                url=with_query(join_url(SERVICES_BASE_URL, "conversations/messages/email"), {"locationId": location}),
                build_body=lambda: base_payload,
            ),
            OperationCandidate(
                url=join_url(versioned, "conversations/messages/email"),
                build_body=lambda: {"locationId": location, **base_payload},
            ),
            OperationCandidate(
                url=with_query(join_url(SERVICES_BASE_URL, "emails"), {"locationId": location}),
                build_body=lambda: base_payload,
            ),
            OperationCandidate(
                url=join_url(versioned, "emails"),
                build_body=lambda: {"locationId": location, **base_payload},
            ),
        ])
        return candidates

    async def send_message(
        self,
        to: str,
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
        from_address: Optional[str] = None,
        from_name: Optional[str] = None,
        reply_to: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> SendMessageResult:
        """Send a transactional email."""
        request = MessageRequest(
            to=to,
            subject=subject,
            html=html,
            text=text,
            from_address=from_address,
            from_name=from_name,
            reply_to=reply_to,
            location_id=location_id,
        )
        try:
            context = await self.resolver.resolve(request.location_id)
            if not context.location_id:
                return SendMessageResult(success=False, error=LOCATION_REQUIRED)

            logger.info(
                f"Sending GHL email for {request.to} (location {context.location_id}, "
                f"auth {context.auth_method.label}, base {context.versioned_base_url})"
            )

            contact_id = None
            try:
                contact_id = await self.find_or_create_contact(context, request.to)
            except ConnectorError as e:
                logger.error(f"Contact lookup/create failed: {e}")

            outcome = await self.chain.run(
                context, self._message_candidates(context, request, contact_id), "email"
            )
            if not outcome.success:
                return SendMessageResult(success=False, error=outcome.error)

            message_id = _first_id(outcome.payload, "messageId", "id", "emailId")
            logger.info(f"GHL email sent via {outcome.winner.name} (message {message_id})")
            return SendMessageResult(success=True, message_id=message_id)

        except ConnectorError as e:
            logger.error(f"Error sending email via GHL: {e}")
            return SendMessageResult(success=False, error=str(e))

    async def get_message_status(self, message_id: str, location_id: Optional[str] = None) -> MessageStatusResult:
        """Delivery status of a sent email."""
        try:
            context = await self.resolver.resolve(location_id)
            if not context.location_id:
                return MessageStatusResult(success=False, error="Location ID is required to fetch email status.")

            query = {"locationId": context.location_id}
            candidates = [
                OperationCandidate(
                    url=with_query(join_url(SERVICES_BASE_URL, f"emails/{message_id}"), query), method="GET"
                ),
                OperationCandidate(
                    url=with_query(join_url(context.versioned_base_url, f"emails/{message_id}"), query),
                    method="GET",
                ),
            ]
            outcome = await self.lenient_chain.run(context, candidates, "email status")
            if not outcome.success:
                return MessageStatusResult(success=False, error=outcome.error)

            data = outcome.payload if isinstance(outcome.payload, dict) else {}
            nested = data.get("data") if isinstance(data.get("data"), dict) else {}
            status = data.get("status") or nested.get("status") or "unknown"
            return MessageStatusResult(success=True, status=status)

        except ConnectorError as e:
            return MessageStatusResult(success=False, error=str(e))

    async def trigger_workflow_email(self, request: WorkflowTriggerRequest) -> WorkflowTriggerResult:
        """Fire the invoice workflow by tagging the contact and writing invoice fields.

        Used when the conversations email API is not available on the plan.
        """
        try:
            context = await self.resolver.resolve(request.location_id)
            if not context.location_id:
                return WorkflowTriggerResult(success=False, error=LOCATION_REQUIRED)

            contact_id = await self.find_or_create_contact(context, request.to, name=request.customer_name)
            if not contact_id:
                return WorkflowTriggerResult(
                    success=False, error="Failed to find or create contact. Cannot trigger workflow."
                )

            url = with_query(self._contacts_url(context, contact_id), {"locationId": context.location_id})
            candidates = custom_field_candidates(
                url, {"email": request.to, "tags": [WORKFLOW_TAG]}, request.custom_fields()
            )
            candidates.append(tag_only_candidate(url, [WORKFLOW_TAG]))

            outcome = await self.lenient_chain.run(context, candidates, "contact update")
            if not outcome.success:
                return WorkflowTriggerResult(success=False, contact_id=contact_id, error=outcome.error)

            logger.info(f"Contact {contact_id} updated via {outcome.winner.name}; workflow should trigger")
            return WorkflowTriggerResult(success=True, contact_id=contact_id)

        except ConnectorError as e:
            logger.error(f"Error triggering GHL workflow: {e}")
            return WorkflowTriggerResult(success=False, error=str(e))

    # ------------------------------------------------------------------
    # Billing sync
    # ------------------------------------------------------------------

    async def sync_customer(self, customer: CustomerRecord, location_id: Optional[str] = None) -> ContactSyncResult:
        """Create or update the contact mirroring a billing customer."""
        try:
            context = await self.resolver.resolve(location_id)
            if not context.location_id:
                return ContactSyncResult(success=False, error=LOCATION_REQUIRED)

            email = customer.resolved_email
            if not email:
                return ContactSyncResult(success=False, error="Customer has no email address")

            existing = await self.search_contact(context, email)
            contact_id = _first_id(existing, "id")

            first_name, last_name = split_name(customer.name, email, "Customer")
            custom_field = [{"name": "Stripe Customer ID", "value": customer.id}]
            if customer.created:
                custom_field.append({"name": "Stripe Customer Since", "value": customer.created.isoformat()})
            contact_data = {
                "email": email,
                "firstName": first_name,
                "lastName": last_name,
                "phone": customer.phone or "",
                "customField": custom_field,
                "tags": [CUSTOMER_TAG],
            }

            if contact_id:
                url = with_query(self._contacts_url(context, contact_id), {"locationId": context.location_id})
                outcome = await self.lenient_chain.run(
                    context,
                    [OperationCandidate(url=url, method="PUT", build_body=lambda: contact_data)],
                    "contact update",
                )
                if outcome.success:
                    return ContactSyncResult(success=True, contact_id=contact_id)
                return ContactSyncResult(success=False, contact_id=contact_id, error=outcome.error)

            contact_id = await self.create_contact(context, contact_data)
            if contact_id:
                return ContactSyncResult(success=True, contact_id=contact_id)
            return ContactSyncResult(success=False, error="Failed to create or update GHL contact")

        except ConnectorError as e:
            return ContactSyncResult(success=False, error=str(e))

    async def sync_invoice(self, invoice: InvoiceRecord, location_id: Optional[str] = None) -> InvoiceSyncResult:
        """Mirror an invoice as an opportunity on the customer's contact."""
        try:
            context = await self.resolver.resolve(location_id)
            if not context.location_id:
                return InvoiceSyncResult(success=False, error=LOCATION_REQUIRED)

            if invoice.customer is None:
                return InvoiceSyncResult(success=False, error="Invoice has no customer")

            customer_sync = await self.sync_customer(invoice.customer, location_id)
            if not customer_sync.success or not customer_sync.contact_id:
                return InvoiceSyncResult(success=False, error=customer_sync.error or "Failed to sync customer")

            amount = invoice.amount_due / 100
            opportunity = _compact({
                "locationId": context.location_id,
                "contactId": customer_sync.contact_id,
                "pipelineId": self.pipeline_id,
                "title": invoice.description or f"Invoice {invoice.display_number}",
                "monetaryValue": amount,
                "status": "Won" if invoice.is_paid else "Open",
                "customField": [
                    {"name": "Stripe Invoice ID", "value": invoice.id},
                    {"name": "Invoice Number", "value": invoice.display_number},
                    {"name": "Invoice Amount", "value": f"{invoice.currency_code} {amount:.2f}"},
                    {"name": "Invoice Status", "value": invoice.status or ""},
                    {"name": "Due Date", "value": invoice.due_date.isoformat() if invoice.due_date else ""},
                    {"name": "Invoice URL", "value": invoice.hosted_invoice_url or ""},
                ],
            })

            url = with_query(
                join_url(context.versioned_base_url, "opportunities"), {"locationId": context.location_id}
            )
            outcome = await self.chain.run(
                context, [OperationCandidate(url=url, build_body=lambda: opportunity)], "opportunity create"
            )
            if not outcome.success:
                return InvoiceSyncResult(success=False, error=outcome.error)
            return InvoiceSyncResult(success=True, opportunity_id=_first_id(outcome.payload, "opportunity", "id"))

        except ConnectorError as e:
            return InvoiceSyncResult(success=False, error=str(e))

    async def notify_payment_success(
        self, invoice: InvoiceRecord, location_id: Optional[str] = None
    ) -> PaymentNotificationResult:
        """Record a payment on the customer's contact (timeline note + tags)."""
        try:
            context = await self.resolver.resolve(location_id)
            if not context.location_id:
                return PaymentNotificationResult(success=False, error=LOCATION_REQUIRED)

            email = invoice.customer.resolved_email if invoice.customer else None
            if not email:
                return PaymentNotificationResult(success=False, error="Customer not found or has no email")

            contact_id = _first_id(await self.search_contact(context, email), "id")
            if not contact_id:
                return PaymentNotificationResult(success=False, error="Contact not found in GHL")

            amount = invoice.amount_paid / 100
            note = (
                f"Payment received: {invoice.currency_code} {amount:.2f} "
                f"for Invoice {invoice.display_number}"
            )
            location_query = {"locationId": context.location_id}

            note_outcome = await self.lenient_chain.run(
                context,
                [OperationCandidate(
                    url=with_query(join_url(context.versioned_base_url, "conversations/notes"), location_query),
                    build_body=lambda: {"contactId": contact_id, "body": note},
                )],
                "payment note",
            )
            tag_outcome = await self.lenient_chain.run(
                context,
                [tag_only_candidate(
                    with_query(self._contacts_url(context, contact_id), location_query),
                    [CUSTOMER_TAG, PAID_TAG],
                )],
                "contact tag update",
            )

            if note_outcome.success or tag_outcome.success:
                return PaymentNotificationResult(success=True)
            return PaymentNotificationResult(
                success=False, error=f"{note_outcome.error} | {tag_outcome.error}"
            )

        except ConnectorError as e:
            return PaymentNotificationResult(success=False, error=str(e))

    # ------------------------------------------------------------------
    # Support
    # ------------------------------------------------------------------

    async def list_contacts(self, limit: int = 100, location_id: Optional[str] = None) -> ContactListResult:
        """First page of contacts for the location."""
        try:
            context = await self.resolver.resolve(location_id)
            if not context.location_id:
                return ContactListResult(success=False, error=LOCATION_REQUIRED)

            url = with_query(
                self._contacts_url(context), {"locationId": context.location_id, "limit": str(limit)}
            )
            result = await self.dispatcher.dispatch(context, "GET", url)
            if not result.ok:
                return ContactListResult(success=False, error=f"Failed to fetch GHL contacts: {result.status_code}")

            data = result.json()
            contacts = (data.get("contacts") or []) if isinstance(data, dict) else None
            if not isinstance(contacts, list):
                return ContactListResult(success=False, error="Failed to parse GHL contacts response")
            return ContactListResult(success=True, contacts=[c for c in contacts if isinstance(c, dict)])

        except ConnectorError as e:
            return ContactListResult(success=False, error=str(e))

    async def test_connection(self, location_id: Optional[str] = None) -> ConnectionReport:
        """Resolve the context and report how the provider will be addressed."""
        try:
            context = await self.resolver.resolve(location_id)
        except ConnectorError as e:
            return ConnectionReport(success=False, error=str(e))
        return ConnectionReport(success=True, **context.to_report())
