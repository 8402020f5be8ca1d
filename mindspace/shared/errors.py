"""Error taxonomy shared by all MindSpace services.

Only InvalidInput (and UnknownPersona) may reach the transport layer.
Every other error is converted into a safe default at the boundary
where it occurs.
"""


class MindSpaceError(Exception):
    """Base exception for MindSpace errors."""
    pass


class InvalidInput(MindSpaceError):
    """Request cannot be safely interpreted (400-equivalent)."""
    pass


class UnknownPersona(InvalidInput):
    """Persona identifier is outside the deployed persona set."""

    def __init__(self, persona):
        self.persona = persona
        super().__init__(f"Unknown persona: {persona!r}")


class ClassifierUnavailable(MindSpaceError):
    """Auxiliary crisis classifier failed or timed out."""
    pass


class ResponderFailure(MindSpaceError):
    """Generative backend failed, timed out, or returned nothing usable."""
    pass


class PersistenceFailure(MindSpaceError):
    """Conversation or wellness storage operation failed."""
    pass
