import uuid


class SessionId(str):
    """Value Object para el id de sesión (UUID generado en el cliente)."""

    def __new__(cls, value: str) -> "SessionId":
        assert value and len(value) >= 8, "SessionId inválido"
        return str.__new__(cls, value)

    @classmethod
    def new(cls) -> "SessionId":
        return cls(str(uuid.uuid4()))
