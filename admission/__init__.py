"""admission/ -- Per-request admission control for authgate.

Every inbound request is classified before routing by an ordered list of
stages: bot detection, attack shield, role-aware sliding-window rate limit.
The first stage that denies wins; a stage fault fails closed.

Layer rule: admission/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or auth/ -- the caller's role arrives as a
plain string on AdmissionRequest.
"""
