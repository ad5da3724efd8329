"""
PII (Personally Identifiable Information) masking filter.

Replaces detected PII with a typed placeholder such as [REDACTED:EMAIL]
before text reaches a provider or leaves the gateway.
"""

import re
from typing import Callable, List, Pattern, Tuple, Union

from guardrails.interfaces import TextFilter

Replacement = Union[str, Callable[[re.Match], str]]

_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
# 4 groups of 4 digits
_CREDIT_CARD = re.compile(r"\b\d{4}[-.\s]?\d{4}[-.\s]?\d{4}[-.\s]?\d{4}\b")
_SSN = re.compile(r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b")
_BANK_ACCOUNT = re.compile(
    r"\b((?:account|routing|acct)(?:\s+number)?[\s:#]*)(\d{8,17})\b", re.IGNORECASE
)
_PHONE_PATTERNS = [
    re.compile(r"(?<!\w)\+?1?[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),  # US format
    re.compile(r"(?<!\w)\+\d{1,3}[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9}\b"),  # International
]


def _token(pii_type: str) -> str:
    return f"[REDACTED:{pii_type}]"


def _mask_ssn(match: re.Match) -> str:
    # Only separated forms (123-45-6789, 123 45 6789) count as SSNs.
    value = match.group(0)
    if not value.isdigit():
        return _token("SSN")
    return value


class PIIMaskingFilter(TextFilter):
    """
    Filter that masks Personally Identifiable Information.

    Detects:
    - Email addresses
    - Credit card numbers
    - Social Security Numbers (SSN)
    - Bank account numbers following "account"/"routing"/"acct"
    - Phone numbers

    Card numbers and account numbers are masked before phone numbers so a
    long digit run is reported under its more specific type.
    """

    def __init__(self):
        self._name = "pii_masking"
        self._redact_emails = True
        self._redact_phones = True
        self._redact_ssn = True
        self._redact_credit_cards = True
        self._redact_bank_accounts = True

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict) -> None:
        """Configure what types of PII to mask."""
        self._redact_emails = config.get("redact_emails", True)
        self._redact_phones = config.get("redact_phones", True)
        self._redact_ssn = config.get("redact_ssn", True)
        self._redact_credit_cards = config.get("redact_credit_cards", True)
        self._redact_bank_accounts = config.get("redact_bank_accounts", True)

    def _rules(self) -> List[Tuple[Pattern, Replacement]]:
        rules: List[Tuple[Pattern, Replacement]] = []
        if self._redact_emails:
            rules.append((_EMAIL, _token("EMAIL")))
        if self._redact_credit_cards:
            rules.append((_CREDIT_CARD, _token("CREDIT_CARD")))
        if self._redact_ssn:
            rules.append((_SSN, _mask_ssn))
        if self._redact_bank_accounts:
            rules.append((_BANK_ACCOUNT, r"\1" + _token("BANK_ACCOUNT")))
        if self._redact_phones:
            rules.extend((pattern, _token("PHONE")) for pattern in _PHONE_PATTERNS)
        return rules

    def apply(self, text: str) -> str:
        for pattern, replacement in self._rules():
            text = pattern.sub(replacement, text)
        return text
