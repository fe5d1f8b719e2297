"""
admission/shield.py -- Signature-based attack shield stage.

Inspects the URL path, the percent-decoded query string and a few
client-controlled headers for common injection payloads. Matching is a
cheap regex pass -- no state, no I/O -- which is why the shield runs before
the rate limiter.

The query string is decoded twice (unquote_plus, then unquote) so a single
layer of double encoding ("%252e%252e") is seen in its attack form.

Rules:
  sql_injection      UNION SELECT, stacked DROP/DELETE, tautologies, time-based probes
  xss                <script>, javascript: URLs, inline event handlers, <iframe>
  path_traversal     ../ sequences and well-known sensitive file paths
  command_injection  command substitution, or a separator chaining a recon command
                     that carries a flag or path argument
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote, unquote_plus

from admission.models import AdmissionRequest, Decision, DenyReason

_RULES: tuple[tuple[str, re.Pattern], ...] = (
    (
        "sql_injection",
        re.compile(
            r"\bunion\b\s+(all\s+)?select\b"
            r"|;\s*(drop|delete|insert|update|truncate|alter)\s+\w"
            r"|'\s*(or|and)\s+'?\w+'?\s*=\s*'?\w+"
            r"|\b(sleep|benchmark|pg_sleep)\s*\(\s*\d"
            r"|\bwaitfor\s+delay\b"
            r"|\binformation_schema\b",
            re.IGNORECASE,
        ),
    ),
    (
        "xss",
        re.compile(
            r"<\s*script\b|javascript\s*:|<\s*iframe\b|<[^>]*\bon(error|load|mouseover|focus|click)\s*=",
            re.IGNORECASE,
        ),
    ),
    (
        "path_traversal",
        re.compile(r"\.\./|\.\.\\|/etc/(passwd|shadow)\b|\bwin\.ini\b|/proc/self/", re.IGNORECASE),
    ),
    (
        "command_injection",
        # Separators alone are common in ordinary values ("fields=name|id",
        # "q=salt & pepper; cat food"). A chained command only counts when it
        # carries a flag or a path; substitution forms always count.
        re.compile(
            r"(`|\$\()\s*(cat|ls|id|whoami|uname|wget|curl|nc|ncat|bash|sh|powershell|ping)\b"
            r"|(;|\|\|?|&&)\s*(cat|ls|id|wget|curl|nc|ncat|bash|sh|powershell|ping)\s+[-/~.]"
            r"|(;|\|\|?|&&)\s*(whoami|uname)\b",
            re.IGNORECASE,
        ),
    ),
)

# Headers an attacker fully controls and that commonly end up in logs or pages.
_INSPECTED_HEADERS = ("user-agent", "referer", "x-forwarded-host")


def find_attack(value: str) -> Optional[str]:
    """Return the name of the first rule matching value, or None."""
    for rule, pattern in _RULES:
        if pattern.search(value):
            return rule
    return None


class ShieldStage:
    name = "shield"

    def inspect(self, request: AdmissionRequest) -> Optional[Decision]:
        candidates = [request.path]
        if request.query_string:
            candidates.append(unquote(unquote_plus(request.query_string)))
        candidates.extend(request.headers[h] for h in _INSPECTED_HEADERS if h in request.headers)

        for value in candidates:
            rule = find_attack(value)
            if rule is not None:
                return Decision.deny(DenyReason.SHIELD, rule=rule)
        return None
