"""Evidence synchronization and collaborative-consistency layer for forensic case data."""

from evidence_sync.session import ForensicSession, SessionContext

__version__ = "0.1.0"

__all__ = ["ForensicSession", "SessionContext", "__version__"]
