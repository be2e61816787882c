"""Account normalization for budgeting-service and manual accounts.

Accounts arrive from two places: the budgeting service (balances in
milliunits, camelCase type codes such as ``creditCard``) and accounts the
user maintains by hand (balances in major units, free-text types and
optional subtypes).  :func:`normalize_accounts` folds both into a single
list of :class:`Account` values with a normalized type tag and a closed
flag so the runway calculator never has to care where an account came
from.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from .money import major_to_cents, milliunits_to_cents

logger = logging.getLogger(__name__)

SOURCE_BUDGET_SERVICE = "budgetService"
SOURCE_MANUAL = "manual"

CHECKING = "checking"
SAVINGS = "savings"
CASH = "cash"
CREDIT = "credit"
LOAN = "loan"
INVESTMENT = "investment"
OTHER = "other"

NORMALIZED_TYPES = (CHECKING, SAVINGS, CASH, CREDIT, LOAN, INVESTMENT, OTHER)
LIABILITY_TYPES = {CREDIT, LOAN}

# Keys are lowercase alphanumerics only, see ``_type_key``
TYPE_ALIASES: Dict[str, str] = {
    'checking': CHECKING,
    'chequing': CHECKING,
    'savings': SAVINGS,
    'saving': SAVINGS,
    'moneymarket': SAVINGS,
    'highyieldsavings': SAVINGS,
    'cash': CASH,
    'wallet': CASH,
    'pettycash': CASH,
    'creditcard': CREDIT,
    'credit': CREDIT,
    'lineofcredit': CREDIT,
    'loan': LOAN,
    'mortgage': LOAN,
    'auto': LOAN,
    'autoloan': LOAN,
    'carloan': LOAN,
    'studentloan': LOAN,
    'personalloan': LOAN,
    'medicaldebt': LOAN,
    'otherdebt': LOAN,
    'otherliability': LOAN,
    'heloc': LOAN,
    'investment': INVESTMENT,
    'otherasset': INVESTMENT,
    '401k': INVESTMENT,
    '403b': INVESTMENT,
    '457b': INVESTMENT,
    '529': INVESTMENT,
    'brokerage': INVESTMENT,
    'ira': INVESTMENT,
    'roth': INVESTMENT,
    'rothira': INVESTMENT,
    'hsa': INVESTMENT,
    'retirement': INVESTMENT,
    'crypto': INVESTMENT,
    'cryptocurrency': INVESTMENT,
}

# Whole-word fallbacks for free-text manual types, checked in order
TYPE_KEYWORDS = (
    ('cash', CASH),
    ('chequing', CHECKING),
    ('checking', CHECKING),
    ('savings', SAVINGS),
    ('saving', SAVINGS),
    ('mortgage', LOAN),
    ('loan', LOAN),
    ('debt', LOAN),
    ('credit', CREDIT),
    ('401k', INVESTMENT),
    ('ira', INVESTMENT),
    ('roth', INVESTMENT),
    ('brokerage', INVESTMENT),
    ('crypto', INVESTMENT),
    ('investment', INVESTMENT),
    ('investments', INVESTMENT),
    ('investing', INVESTMENT),
)

# "Credit union" names an institution, not a credit line
NON_CREDIT_TOKENS = {'union'}

DISPLAY_TYPES = {
    CHECKING: 'Checking',
    SAVINGS: 'Savings',
    CASH: 'Cash',
    CREDIT: 'Credit Card',
    LOAN: 'Loan',
    INVESTMENT: 'Investment',
}

INSTITUTION_NOTE_PATTERN = re.compile(r'Institution: (.+?)(?:\n|$)')


@dataclass(frozen=True)
class Account:
    """A normalized account.  ``balance`` is signed integer cents."""

    id: str
    name: str
    source: str
    normalized_type: str
    balance: int
    closed_on: Optional[date] = None
    closed: bool = False
    display_type: str = 'Other'
    institution_name: str = ''

    @property
    def is_closed(self) -> bool:
        return self.closed or self.closed_on is not None

    @property
    def is_liability(self) -> bool:
        return self.normalized_type in LIABILITY_TYPES


def _type_key(value: Any) -> str:
    return ''.join(ch for ch in str(value).lower() if ch.isalnum())


def _type_tokens(value: Any) -> List[str]:
    text = re.sub(r'([a-z])([A-Z])', r'\1 \2', str(value))
    return re.findall(r'[a-z0-9]+', text.lower())


def _lookup_type(value: Any) -> Optional[str]:
    if value is None:
        return None
    key = _type_key(value)
    if not key:
        return None
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    tokens = _type_tokens(value)
    for keyword, normalized in TYPE_KEYWORDS:
        if keyword not in tokens:
            continue
        if normalized == CREDIT and NON_CREDIT_TOKENS.intersection(tokens):
            continue
        return normalized
    return None


def normalize_account_type(
    account_type: Any,
    subtype: Any = None,
    source: str = SOURCE_BUDGET_SERVICE,
) -> str:
    """Derive the normalized type tag from source-specific type hints.

    The subtype is consulted first because it is the more specific hint
    (``type="investment", subtype="401k"``).  Unrecognized budget-service
    types become ``other``; unrecognized manual types are assumed to be cash.
    """
    normalized = _lookup_type(subtype) or _lookup_type(account_type)
    if normalized:
        return normalized
    return CASH if source == SOURCE_MANUAL else OTHER


def _display_type(raw_type: Any, subtype: Any, normalized: str) -> str:
    for hint in (subtype, raw_type):
        if hint is not None and _type_key(hint) == 'mortgage':
            return 'Mortgage'
    if normalized in DISPLAY_TYPES:
        return DISPLAY_TYPES[normalized]
    text = str(raw_type or '').strip()
    return text[:1].upper() + text[1:] if text else 'Other'


def _parse_closed_on(value: Any) -> Optional[date]:
    if value in (None, '', False):
        return None
    parsed = pd.to_datetime(value, errors='coerce')
    if pd.isna(parsed):
        return None
    return parsed.date()


def _institution_name(raw: Mapping[str, Any], name: str, source: str) -> str:
    if source == SOURCE_MANUAL and raw.get('institution'):
        return str(raw['institution'])
    note = raw.get('note')
    if isinstance(note, str):
        match = INSTITUTION_NOTE_PATTERN.search(note)
        if match:
            return match.group(1).strip()
    first_word = name.split(' ')[0] if name else ''
    if first_word:
        return first_word
    return 'Manual Account' if source == SOURCE_MANUAL else 'Unknown Institution'


def normalize_account(raw: Mapping[str, Any], source: str) -> Optional[Account]:
    """Normalize a single raw record, or return ``None`` for malformed input."""
    if not isinstance(raw, Mapping):
        logger.warning("Skipping %s account record that is not a mapping: %r", source, raw)
        return None

    account_id = raw.get('id') or raw.get('account_id')
    name = raw.get('name')
    if not account_id or not name:
        logger.warning("Skipping %s account missing id or name: %r", source, raw)
        return None

    raw_balance = raw.get('balance')
    try:
        if source == SOURCE_BUDGET_SERVICE:
            balance = milliunits_to_cents(raw_balance)
        else:
            balance = major_to_cents(raw_balance)
    except ValueError:
        logger.warning("Skipping %s account %s with unusable balance %r", source, account_id, raw_balance)
        return None

    raw_type = raw.get('type')
    subtype = raw.get('subtype')
    normalized = normalize_account_type(raw_type, subtype, source)

    closed_on = _parse_closed_on(raw.get('closed_on'))
    explicitly_closed = raw.get('closed') is True or raw.get('deleted') is True or bool(raw.get('closed_on'))
    # Paid-off debts are often left open upstream with a zero balance
    auto_closed = normalized in LIABILITY_TYPES and balance == 0 and not explicitly_closed

    return Account(
        id=str(account_id),
        name=str(name),
        source=source,
        normalized_type=normalized,
        balance=balance,
        closed_on=closed_on,
        closed=explicitly_closed or auto_closed,
        display_type=_display_type(raw_type, subtype, normalized),
        institution_name=_institution_name(raw, str(name), source),
    )


def normalize_accounts(
    budget_accounts: Optional[Iterable[Mapping[str, Any]]] = None,
    manual_accounts: Optional[Iterable[Mapping[str, Any]]] = None,
) -> List[Account]:
    """Combine budgeting-service and manual accounts into one normalized list."""
    normalized: List[Account] = []
    for source, records in (
        (SOURCE_BUDGET_SERVICE, budget_accounts or []),
        (SOURCE_MANUAL, manual_accounts or []),
    ):
        for raw in records:
            account = normalize_account(raw, source)
            if account is not None:
                normalized.append(account)
    return normalized


def account_totals(accounts: Iterable[Account]) -> Dict[str, int]:
    """Assets, liabilities and net worth in cents over open accounts."""
    assets = 0
    liabilities = 0
    for account in accounts:
        if account.is_closed:
            continue
        if account.is_liability:
            liabilities += abs(account.balance)
        else:
            assets += account.balance
    return {
        'assets': assets,
        'liabilities': liabilities,
        'net_worth': assets - liabilities,
    }


def accounts_frame(accounts: Iterable[Account]) -> pd.DataFrame:
    """Tabular view of normalized accounts for display."""
    rows = [
        {
            'Name': account.name,
            'Institution': account.institution_name,
            'Type': account.display_type,
            'Normalized Type': account.normalized_type,
            'Source': account.source,
            'Balance': account.balance,
            'Closed': account.is_closed,
        }
        for account in accounts
    ]
    columns = ['Name', 'Institution', 'Type', 'Normalized Type', 'Source', 'Balance', 'Closed']
    return pd.DataFrame(rows, columns=columns)
