"""
Airtable request-governance gateway.

Mediates calls from an automation agent to the Airtable Web API: every call
passes the governance allow-list, is rate limited per base and per token,
retried on transient failure and classified into a closed error taxonomy.

Modules:
    api_client     - Delivery client (admission, HTTP, classification, retry)
    governance     - Allow-lists and PII policies
    exception_log  - Bounded newest-first failure log
    context        - Explicit application context
    operations     - describe/query/create/update/upsert and introspection
"""

__version__ = "0.1.0"
