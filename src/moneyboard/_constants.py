"""Protocol constants and fixed dashboard values."""

from __future__ import annotations

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1"

SIGN_UP_ENDPOINT = "/accounts:signUp"
SIGN_IN_WITH_CUSTOM_TOKEN_ENDPOINT = "/accounts:signInWithCustomToken"
REFRESH_TOKEN_ENDPOINT = "/token"

USER_AGENT = "moneyboard/python"

#: Subject identifier reported when no user has resolved yet.
ANONYMOUS_SUBJECT = "anonymous"

DEFAULT_APPLICATION_ID = "default-app-id"

#: Collection holding the shared expense documents, scoped by application id.
EXPENSES_COLLECTION_TEMPLATE = "/artifacts/{application_id}/public/data/expenses"

#: Placeholder figures shown by the dashboard (per record).
SHARED_EXPENSE_PER_RECORD = 100
LIABILITY_PER_RECORD = 50

#: Seconds subtracted from an ID token's lifetime before it is treated as expired.
TOKEN_EXPIRY_MARGIN_S = 60.0
