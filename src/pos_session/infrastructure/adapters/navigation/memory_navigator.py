from __future__ import annotations

from pos_session.application.ports.navigator_port import NavigatorPort


class InMemoryNavigator(NavigatorPort):
    """Tracks the current route and every navigation made through it."""

    def __init__(self, route: str = "/") -> None:
        self._route = route
        self.history: list[str] = []

    def current_route(self) -> str:
        return self._route

    def navigate(self, route: str) -> None:
        self._route = route.split("?", 1)[0]
        self.history.append(route)

    def visit(self, route: str) -> None:
        """The user moved on their own (no redirect recorded)."""
        self._route = route
