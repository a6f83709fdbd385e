"""GoHighLevel credential, context and dispatch layer.

Components, leaves first:
- classifier: token shape -> (kind, location hint)
- cache: credential -> ResolvedContext with TTL
- resolver: location priority + PIT probe sweep
- dispatcher: one request with auth rotation and self-healing
- fallback: ordered endpoint/payload candidates per operation
- operations: GhlClient entry points
"""

from .cache import CacheEntry, ContextCache
from .classifier import (
    CredentialValidation,
    TokenClassification,
    TokenKind,
    classify_token,
    mask_token,
    validate_api_key,
)
from .context import AuthState, LocationSource, ResolvedContext
from .dispatcher import DispatchResult, RequestDispatcher
from .fallback import (
    ChainResult,
    FallbackChain,
    OperationCandidate,
    PayloadStrategy,
    build_custom_field_payload,
)
from .hints import DEFAULT_HINTS, PhraseSet, ResponseHints
from .models import (
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
from .operations import LOCATION_REQUIRED, GhlClient
from .resolver import ContextResolver, ProbeOutcome, extract_location_id

__all__ = [
    # Classification
    "TokenKind",
    "TokenClassification",
    "CredentialValidation",
    "classify_token",
    "mask_token",
    "validate_api_key",
    # Context and cache
    "AuthState",
    "LocationSource",
    "ResolvedContext",
    "CacheEntry",
    "ContextCache",
    "ContextResolver",
    "ProbeOutcome",
    "extract_location_id",
    # Dispatch
    "DispatchResult",
    "RequestDispatcher",
    "PhraseSet",
    "ResponseHints",
    "DEFAULT_HINTS",
    # Fallback
    "OperationCandidate",
    "FallbackChain",
    "ChainResult",
    "PayloadStrategy",
    "build_custom_field_payload",
    # Operations
    "GhlClient",
    "LOCATION_REQUIRED",
    "MessageRequest",
    "CustomerRecord",
    "InvoiceRecord",
    "WorkflowTriggerRequest",
    "SendMessageResult",
    "ContactSyncResult",
    "InvoiceSyncResult",
    "PaymentNotificationResult",
    "MessageStatusResult",
    "WorkflowTriggerResult",
    "ContactListResult",
    "ConnectionReport",
]
