"""Account gateway adapters."""

from joymed.adapters.auth.memory import InMemoryAccountGateway
from joymed.adapters.auth.remote import RemoteAccountGateway

__all__ = ["InMemoryAccountGateway", "RemoteAccountGateway"]
