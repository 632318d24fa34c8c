from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from pos_session.application.dtos.session_dto import SessionDTO
from pos_session.domain.entities.session import Session


@dataclass(frozen=True)
class CoordinatorState:
    """Immutable snapshot handed to observers."""

    session_data: Session | None = None
    show_extension_prompt: bool = False
    prompt_deadline: datetime | None = None
    show_logout_message: bool = False
    demo_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        session = asdict(SessionDTO.from_domain(self.session_data)) if self.session_data else None
        return {
            "session_data": session,
            "show_extension_prompt": self.show_extension_prompt,
            "prompt_deadline": self.prompt_deadline.isoformat() if self.prompt_deadline else None,
            "show_logout_message": self.show_logout_message,
            "demo_message": self.demo_message,
        }
