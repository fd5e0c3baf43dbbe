# src/codegrader/identity.py
#
# Student identity recovery from archive entry names.
#
# LMS exports name per-student archives/folders inconsistently. Each naming
# convention is handled by one pure rule `name -> Optional[Identity]`; the rules
# are tried in a fixed priority order and the first success wins. Rules are
# never combined.
#
# Observed conventions:
#   Segura_Joshua_jgs32calvin.edu_2025-10-10_23-43-22   (Moodle, '@' stripped)
#   Doe_Jane_jane@school.edu_1700000000                  (zyBooks-style)
#   jane@school.edu                                      (bare email)
#   Doe-Jane-jane@school.edu-2024                        (dash-delimited)
#   project1                                             (nothing usable)

from __future__ import annotations

import logging
import re
from functools import partial
from typing import Callable, Optional, Sequence, Tuple

from .config import DEFAULT_FALLBACK_DOMAIN, DEFAULT_KNOWN_DOMAINS
from .models import Identity

logger = logging.getLogger(__name__)


# Trailing "domain.tld" run; the lazy local part keeps the domain as long as possible.
_GENERIC_DOMAIN_RE = re.compile(r"^([a-z0-9._%-]+?)((?:[a-z]+\.)+[a-z]{2,})$", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

Rule = Callable[[str], Optional[Identity]]


# -----------------------------
# Email repair
# -----------------------------

def repair_email(
    token: str,
    *,
    known_domains: Sequence[str] = DEFAULT_KNOWN_DOMAINS,
    fallback_domain: str = DEFAULT_FALLBACK_DOMAIN,
) -> str:
    """
    Rebuild an email address from a token whose '@' was stripped by the exporter.

    Order: token already has '@' -> known institutional suffix -> generic
    trailing domain -> '{token}@{fallback_domain}'.
    """
    if "@" in token:
        return token

    lowered = token.lower()
    for domain in known_domains:
        d = domain.lower()
        if lowered.endswith(d) and len(token) > len(d):
            return f"{token[: -len(d)]}@{token[-len(d):]}"

    m = _GENERIC_DOMAIN_RE.match(token)
    if m:
        return f"{m.group(1)}@{m.group(2)}"

    return f"{token}@{fallback_domain}"


# -----------------------------
# Rules
# -----------------------------

def _tokens(name: str, sep: str = "_") -> list:
    return name.split(sep)


def _first_with_at(parts: Sequence[str]) -> Optional[str]:
    return next((p for p in parts if "@" in p), None)


def underscore_four_field(
    name: str,
    *,
    known_domains: Sequence[str] = DEFAULT_KNOWN_DOMAINS,
    fallback_domain: str = DEFAULT_FALLBACK_DOMAIN,
) -> Optional[Identity]:
    """LAST_FIRST_EMAILTOKEN_DATE... (date may itself contain underscores)."""
    parts = _tokens(name)
    if len(parts) < 4:
        return None

    email = repair_email(parts[2], known_domains=known_domains, fallback_domain=fallback_domain)
    return Identity(
        last_name=parts[0] or "Unknown",
        first_name=parts[1] or "Student",
        email=email,
        date="_".join(parts[3:]) or "unknown",
    )


def embedded_at(name: str) -> Optional[Identity]:
    """Underscore tokens with a full email somewhere among them."""
    parts = _tokens(name)
    if len(parts) < 2:
        return None
    email = _first_with_at(parts)
    if email is None:
        return None
    return Identity(
        last_name=parts[0] or "Unknown",
        first_name=parts[1] or "Unknown",
        email=email,
        date=parts[-1] or "unknown",
    )


def embedded_at_fallback(name: str) -> Optional[Identity]:
    parts = _tokens(name)
    email = _first_with_at(parts)
    if email is None:
        return None
    return Identity(
        last_name=parts[0] or "Unknown",
        first_name=parts[1] if len(parts) > 1 and parts[1] else "Student",
        email=email,
        date=parts[-1] or "unknown",
    )


def dash_delimited(name: str) -> Optional[Identity]:
    if "-" not in name:
        return None
    parts = _tokens(name, "-")
    email = _first_with_at(parts)
    if email is None:
        return None
    return Identity(
        last_name=parts[0] or "Unknown",
        first_name=parts[1] if len(parts) > 1 and parts[1] else "Student",
        email=email,
        date=parts[-1] or "unknown",
    )


def last_resort(name: str, *, fallback_domain: str = DEFAULT_FALLBACK_DOMAIN) -> Optional[Identity]:
    parts = [p for p in _tokens(name) if p.strip()]
    if not parts:
        return None
    base = _NON_ALNUM_RE.sub("", parts[0].lower()) or "".join(parts[0].lower().split())
    return Identity(
        last_name=parts[0],
        first_name=parts[1] if len(parts) > 1 else "Student",
        email=f"{base}@{fallback_domain}",
        date="unknown",
    )


def build_rules(
    *,
    known_domains: Sequence[str] = DEFAULT_KNOWN_DOMAINS,
    fallback_domain: str = DEFAULT_FALLBACK_DOMAIN,
) -> Tuple[Rule, ...]:
    return (
        partial(underscore_four_field, known_domains=known_domains, fallback_domain=fallback_domain),
        embedded_at,
        embedded_at_fallback,
        dash_delimited,
        partial(last_resort, fallback_domain=fallback_domain),
    )


DEFAULT_RULES: Tuple[Rule, ...] = build_rules()


# -----------------------------
# Public API
# -----------------------------

def parse_student_info(name: str, rules: Sequence[Rule] = DEFAULT_RULES) -> Optional[Identity]:
    """
    Derive (last_name, first_name, email, date) from an archive entry name.

    `name` should already have its extension stripped. Returns None when the
    name carries no usable token at all; callers must report the entry.
    """
    cleaned = (name or "").strip()
    if not any(cleaned.split("_")):
        logger.debug("No tokens in entry name %r", name)
        return None

    for rule in rules:
        identity = rule(cleaned)
        if identity is not None:
            logger.debug("Parsed %r -> %s", name, identity.email)
            return identity

    logger.debug("Could not parse student info from %r", name)
    return None
