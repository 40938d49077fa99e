"""Request context management for observability.

Context variables for request tracking across async boundaries.
identity_id_var is set by the authentication gate once a bearer token resolves.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Identity ID - authenticated caller for the current request ("" when anonymous)
identity_id_var: ContextVar[str] = ContextVar("identity_id", default="")
