"""
eTuition Backend - Auth Package
===============================

What:  Bearer token issuance/verification (tokens.py) and the dependencies
       that gate routes by role and ownership (dependencies.py).
"""

from etuition.auth.dependencies import (
    RoleGate,
    ensure_owner,
    get_current_principal,
    require_admin,
    require_student,
    require_tutor,
)
from etuition.auth.tokens import Principal, decode_token, issue_token

__all__ = [
    "Principal",
    "RoleGate",
    "decode_token",
    "ensure_owner",
    "get_current_principal",
    "issue_token",
    "require_admin",
    "require_student",
    "require_tutor",
]
