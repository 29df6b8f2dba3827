"""
Client-side model of directory (LDAP) entries with change tracking.
"""

from .entry import DirectoryEntry
from .export import NEW_ITEMS_COMMENT, EntryLDIFWriter
from .modlist import Operation
from .session import DirectorySession, LdapSession, ProtocolError

__version__ = "1.0.0"

__all__ = [
    "NEW_ITEMS_COMMENT",
    "DirectoryEntry",
    "DirectorySession",
    "EntryLDIFWriter",
    "LdapSession",
    "Operation",
    "ProtocolError",
]
