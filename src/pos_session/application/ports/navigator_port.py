from typing import Protocol


class NavigatorPort(Protocol):
    """Routing surface of the UI shell."""

    def current_route(self) -> str: ...
    def navigate(self, route: str) -> None: ...
