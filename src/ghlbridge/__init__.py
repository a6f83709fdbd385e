"""GoHighLevel integration layer for Revive.

Credential classification, context resolution and resilient request
dispatch for the GoHighLevel (LeadConnector) REST API.
"""

__version__ = "0.3.0"
