"""Role to capability resolution."""
import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from attendance_integrity.utils.exceptions import AuthorizationError


class Role(enum.Enum):
    """Roles carried in the bearer token."""
    ADMIN = "ADMIN"
    COORDINATOR = "COORDINATOR"
    LECTURER = "LECTURER"
    SUPERVISOR = "SUPERVISOR"
    ONLINE_SUPERVISOR = "ONLINE_SUPERVISOR"
    CLASS_REP = "CLASS_REP"


class Capability(enum.Enum):
    CREATE_SCHEDULE = "CREATE_SCHEDULE"
    UPDATE_SCHEDULE = "UPDATE_SCHEDULE"
    SUBMIT_ATTENDANCE = "SUBMIT_ATTENDANCE"
    VERIFY_ATTENDANCE = "VERIFY_ATTENDANCE"
    READ_AUDIT = "READ_AUDIT"
    EXPORT_AUDIT = "EXPORT_AUDIT"
    VERIFY_AUDIT = "VERIFY_AUDIT"
    CLEANUP_AUDIT = "CLEANUP_AUDIT"
    RECONCILE_SCHEDULES = "RECONCILE_SCHEDULES"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.COORDINATOR: frozenset({
        Capability.CREATE_SCHEDULE,
        Capability.UPDATE_SCHEDULE,
        Capability.READ_AUDIT,
    }),
    Role.LECTURER: frozenset({Capability.SUBMIT_ATTENDANCE}),
    Role.SUPERVISOR: frozenset({Capability.VERIFY_ATTENDANCE}),
    Role.ONLINE_SUPERVISOR: frozenset({Capability.VERIFY_ATTENDANCE}),
    Role.CLASS_REP: frozenset(),
}

SYSTEM_USER_ID = "system"


def capabilities_for(role: Optional[Role]) -> FrozenSet[Capability]:
    """Capabilities granted to a role; unknown roles get none."""
    if role is None:
        return frozenset()
    return ROLE_CAPABILITIES.get(role, frozenset())


def parse_role(value) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(str(value).upper())
    except ValueError:
        return None


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller resolved once per request."""
    user_id: str
    role: Optional[Role]
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def from_claims(cls, user_id, role_claim, ip_address=None, user_agent=None, session_id=None):
        role = parse_role(role_claim)
        return cls(
            user_id=str(user_id),
            role=role,
            capabilities=capabilities_for(role),
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id
        )

    @classmethod
    def system(cls) -> 'CallerIdentity':
        """Identity used by CLI commands and background jobs."""
        return cls(
            user_id=SYSTEM_USER_ID,
            role=Role.ADMIN,
            capabilities=capabilities_for(Role.ADMIN)
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise AuthorizationError(
                f"{capability.value} permission required",
                details={'capability': capability.value}
            )

    def audit_context(self) -> Dict[str, Optional[str]]:
        """Keyword arguments describing this caller for ledger entries."""
        return {
            'user_id': self.user_id,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'session_id': self.session_id
        }
