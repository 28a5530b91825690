"""Client repository."""

from crmvault.infrastructure.database.models.client import Client
from crmvault.infrastructure.database.repositories.base import BaseRepository


class ClientRepository(BaseRepository[Client]):
    """Repository for client records. Stores envelopes only."""

    model_class = Client
