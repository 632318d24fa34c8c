class Role(str):
    """Value Object para el rol del usuario.

    Normalized to lowercase; a missing role becomes the empty string, which no
    policy treats as eligible for anything.
    """

    def __new__(cls, value: str | None) -> "Role":
        return str.__new__(cls, (value or "").strip().lower())

    @property
    def is_known(self) -> bool:
        return bool(self)
