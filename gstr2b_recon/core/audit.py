from abc import ABC, abstractmethod
from typing import List
from gstr2b_recon.schemas.audit import AuditLogEntry
import logging

logger = logging.getLogger(__name__)

class AuditRepository(ABC):
    @abstractmethod
    def save(self, entry: AuditLogEntry):
        pass

    @abstractmethod
    def get_all(self) -> List[AuditLogEntry]:
        pass

    @abstractmethod
    def clear(self):
        pass

class InMemoryAuditRepository(AuditRepository):
    def __init__(self):
        self._storage: List[AuditLogEntry] = []

    def save(self, entry: AuditLogEntry):
        # Append-only; entries are frozen models
        self._storage.append(entry)
        logger.info(f"Audit Logged: {entry.model_dump_json()}")

    def get_all(self) -> List[AuditLogEntry]:
        return list(self._storage)

    def clear(self):
        self._storage.clear()

# Global Accessor
audit_repo = InMemoryAuditRepository()
