"""auth/ -- Credential hashing, session tokens, cookie transport and the
sign-up / sign-in / sign-out flows for authgate.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or admission/.
api/ imports from auth/, not the other way around.
"""
