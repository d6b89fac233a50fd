"""
Department name normalization.

Employee profiles and PMS projects label departments independently
("Software Developers" vs "software", "HR & Admin" vs "hr"). Every
visibility decision goes through ``normalize`` so both sides are compared
as canonical tokens.
"""
import logging

logger = logging.getLogger(__name__)


DEPARTMENT_SYNONYMS = {
    'software': 'software',
    'software developers': 'software',
    'software developer': 'software',
    'finance': 'finance',
    'purchase': 'purchase',
    'purchases': 'purchase',
    'hr': 'hr',
    'hr & admin': 'hr',
    'hr and admin': 'hr',
    'human resources': 'hr',
    'human resources & admin': 'hr',
    'operations': 'operations',
    'operation': 'operations',
    'marketing': 'marketing',
    'sales': 'sales',
    'admin': 'admin',
    'administration': 'admin',
    'it': 'it',
    'information technology': 'it',
    'qa': 'qa',
    'quality assurance': 'qa',
    'testing': 'qa',
    'presale': 'presales',
    'presales': 'presales',
    'pre-sales': 'presales',
    'pre sales': 'presales',
}

# Roles that see every project regardless of department tags
UNRESTRICTED_ROLES = ('admin',)


def normalize(raw):
    """Return the canonical token for a department label ('' when blank)."""
    if raw is None:
        return ''
    value = ' '.join(str(raw).strip().lower().split())
    if not value:
        return ''
    return DEPARTMENT_SYNONYMS.get(value, value)


def match(a, b):
    """True when both labels normalize to the same non-empty token."""
    token = normalize(a)
    return bool(token) and token == normalize(b)


def candidate_tokens(value):
    """
    Collect normalized tokens from a department value of any shape:
    a single label, a comma separated string, or a list/tuple/set of either.
    """
    if value is None:
        return set()

    if isinstance(value, (list, tuple, set, frozenset)):
        tokens = set()
        for item in value:
            tokens |= candidate_tokens(item)
        return tokens

    tokens = set()
    for part in str(value).split(','):
        token = normalize(part)
        if token:
            tokens.add(token)
    return tokens


def matches_any(user_department, candidates):
    """True if any candidate department matches the user's department."""
    user_token = normalize(user_department)
    if not user_token:
        return False
    return user_token in candidate_tokens(candidates)


def is_visible(departments, role=None, user_department=None):
    """
    Decide whether a project tagged with ``departments`` is visible.

    Admins bypass filtering. A caller without a department label is not
    narrowed. A project without any department tag is hidden from
    department-filtered views.
    """
    if role and str(role).lower() in UNRESTRICTED_ROLES:
        return True
    if not normalize(user_department):
        return True
    if not candidate_tokens(departments):
        return False
    return matches_any(user_department, departments)
