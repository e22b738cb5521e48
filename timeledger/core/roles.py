from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


ROLE_RANK = {
    Role.EMPLOYEE: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
}


@dataclass(frozen=True)
class Caller:
    user_id: str
    company_id: int
    role: Role = Role.EMPLOYEE

    def has_role(self, role: Role) -> bool:
        return ROLE_RANK[self.role] >= ROLE_RANK[role]

    @property
    def is_approver(self) -> bool:
        return self.has_role(Role.MANAGER)
