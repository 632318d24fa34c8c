from dataclasses import dataclass

from pos_session.domain.entities.session import Session


@dataclass(frozen=True)
class SessionDTO:
    id: str
    user_id: str
    role: str
    expires_at: str
    is_valid: bool
    extension_count: int
    created_at: str
    last_activity: str
    ip_address: str
    user_agent: str | None

    @classmethod
    def from_domain(cls, session: Session) -> "SessionDTO":
        return cls(
            id=str(session.id),
            user_id=session.user_id,
            role=str(session.role),
            expires_at=session.expires_at.isoformat(),
            is_valid=session.is_valid,
            extension_count=session.extension_count,
            created_at=session.created_at.isoformat(),
            last_activity=session.last_activity.isoformat(),
            ip_address=session.ip_address,
            user_agent=session.user_agent,
        )
