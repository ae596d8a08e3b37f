"""auth/ -- Accounts, tokens, the login audit log and the authentication flows.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
