from collections.abc import Callable

from pos_session.application.dtos.coordinator_state_dto import CoordinatorState


class ConsoleStateObserver:
    """Observer that prints every state change; used by the CLI."""

    def __init__(self, echo: Callable[[str], None] = print, prefix: str = "") -> None:
        self.echo = echo
        self.prefix = prefix
        self.received = 0

    def __call__(self, state: CoordinatorState) -> None:
        self.received += 1
        session = state.session_data
        if session is None:
            summary = "session=none"
        else:
            summary = (
                f"session={session.id[:8]} expires_at={session.expires_at.isoformat()} "
                f"extensions={session.extension_count}"
            )
        flags = []
        if state.show_extension_prompt:
            flags.append(f"PROMPT until={state.prompt_deadline.isoformat()}" if state.prompt_deadline else "PROMPT")
        if state.show_logout_message:
            flags.append("LOGGED_OUT")
        if state.demo_message:
            flags.append(f"msg={state.demo_message!r}")
        self.echo(f"{self.prefix}[state] {summary} {' '.join(flags)}".rstrip())
