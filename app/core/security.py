# app/core/security.py
#
# Session handling lives in the upstream auth gateway. It forwards the
# authenticated principal as trusted headers; this module only reads them.
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from app.core.exceptions import AuthorizationError
from app.models.user_model import UserRole

STAFF_ROLES = {
    UserRole.ACCOUNTANT,
    UserRole.SUPERVISOR,
    UserRole.MANAGER,
    UserRole.COMMITTEE,
}


@dataclass(frozen=True)
class Principal:
    id: int
    role: UserRole
    et_number: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def get_current_principal(
        x_user_id: Optional[int] = Header(None),
        x_user_role: Optional[str] = Header(None),
        x_et_number: Optional[int] = Header(None),
) -> Principal:
    if x_user_id is None or not x_user_role:
        raise AuthorizationError("Unauthorized", requirement="Authenticated Session")

    try:
        role = UserRole(x_user_role.strip().upper())
    except ValueError:
        raise AuthorizationError(
            f"Unknown role: {x_user_role}",
            requirement="Authenticated Session",
        )

    return Principal(id=x_user_id, role=role, et_number=x_et_number)


def require_staff(principal: Principal) -> Principal:
    if not principal.is_staff:
        raise AuthorizationError(
            "Staff role required",
            requirement="Staff Access",
            role=principal.role.value,
        )
    return principal


def require_role(principal: Principal, *roles: UserRole) -> Principal:
    if principal.role not in roles:
        raise AuthorizationError(
            f"{' or '.join(r.value for r in roles)} role required",
            requirement="Role Access",
            role=principal.role.value,
        )
    return principal
