"""
e-Invoicing integration with the tax authority's validation API.

Submits finalized invoices as fiscal documents and tracks every attempt
through a submission job with an append-only audit trail.

Components:
- settings: Credentials, environments and document defaults
- models: SubmissionJob state machine and AuditEvent trail
- client: OAuth2 authentication and document submission over HTTP
- token_cache: Per-environment bearer token cache
- mapper: Invoice to fiscal document transformation
- audit: Best-effort audit event recorder
- service: Job lifecycle manager
- tasks: Django-Q tasks for async submission and due retries
"""
