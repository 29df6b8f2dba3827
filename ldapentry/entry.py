"""
Client-side model of a single directory entry.

A :py:class:`DirectoryEntry` keeps two things side by side:

* its :py:class:`~ldapentry.store.AttributeStore`, the values the entry has
  right now from the caller's point of view, and
* its :py:class:`~ldapentry.ledger.MutationLedger`, every value added or
  removed since the entry was loaded or created.

Every mutator updates both.  :py:meth:`DirectoryEntry.sync` replays the
ledger against a :py:class:`~ldapentry.session.DirectorySession` and
:py:meth:`DirectoryEntry.export` writes the entry out as LDIF.
"""

import io
import logging
from collections.abc import Iterable
from typing import TextIO

from .export import EntryLDIFWriter
from .ledger import MutationLedger
from .modlist import Modlist, Operation
from .session import DirectorySession, ProtocolError
from .store import AttributeStore

logger = logging.getLogger(__name__)


class DirectoryEntry:
    """
    One directory entry and its not-yet-synced local changes.

    Constructing one directly makes a brand-new entry that does not exist on
    the server yet; use :py:meth:`from_record` for entries read from the
    server.

    Args:
        dn: the distinguished name of the entry

    """

    def __init__(self, dn: str) -> None:
        self._dn = dn
        self._is_new = True
        self.store = AttributeStore()
        self.ledger = MutationLedger()

    @classmethod
    def from_record(cls, dn: str, attributes: dict[str, Iterable[str]]) -> "DirectoryEntry":
        """
        Build an entry from what the server returned for it.

        ``attributes`` becomes the entry's baseline: it is loaded into the
        store and nothing is queued in the ledger.

        Args:
            dn: the distinguished name of the entry
            attributes: ``{attribute: [value, ...]}``

        Returns:
            An entry that is not new.

        """
        entry = cls(dn)
        entry._is_new = False
        entry.store = AttributeStore(attributes)
        return entry

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self._dn}>"

    def __contains__(self, attr: object) -> bool:
        return attr in self.store

    def __len__(self) -> int:
        return len(self.store)

    @property
    def is_new(self) -> bool:
        """True until the entry has been created on the server."""
        return self._is_new

    @property
    def has_changes(self) -> bool:
        return bool(self.ledger)

    @property
    def pending_additions(self) -> dict[str, list[str]]:
        return self.ledger.additions()

    @property
    def pending_removals(self) -> dict[str, list[str]]:
        return self.ledger.removals()

    # -----------------------
    # Reading
    # -----------------------

    def get_dn(self) -> str:
        return self._dn

    def get_keys(self) -> list[str]:
        """Return the names of the attributes the entry has, sorted."""
        return self.store.keys()

    def get_value(self, attr: str) -> list[str]:
        """Return the values of ``attr``; ``[]`` if the entry lacks it."""
        return self.store.values(attr)

    def get_first_value(self, attr: str) -> str:
        """Return the first value of ``attr``; ``""`` if the entry lacks it."""
        return self.store.first_value(attr)

    # -----------------------
    # Mutating
    # -----------------------

    def add_value(self, attr: str, value: str) -> None:
        """
        Add ``value`` to ``attr``, creating ``attr`` if the entry lacks it.

        The value is visible immediately; it is written to the server by the
        next :py:meth:`sync`.
        """
        self.store.append(attr, value)
        self.ledger.record_add(attr, value)

    def remove_value(self, attr: str, value: str) -> None:
        """
        Remove ``value`` from ``attr``.

        Every occurrence of ``value`` is removed from the entry and queued for
        deletion on the server, once per occurrence.  If that leaves ``attr``
        with no values, ``attr`` is gone from :py:meth:`get_keys`.  Removing a
        value the entry does not have does nothing.
        """
        for removed in self.store.remove_exact(attr, value):
            self.ledger.record_remove(attr, removed)

    def remove_all_values(self, attr: str) -> None:
        """
        Remove ``attr`` and queue all of its current values for deletion.
        Does nothing if the entry lacks ``attr``.
        """
        for removed in self.store.remove_all(attr):
            self.ledger.record_remove(attr, removed)

    # -----------------------
    # Syncing
    # -----------------------

    def operations(self) -> list[Operation]:
        """
        Return the operations the next :py:meth:`sync` of an existing entry
        would send: all deletions, then all additions.
        """
        return Modlist(self.ledger).update()

    def sync(self, session: DirectorySession) -> None:
        """
        Write the queued changes to the directory.

        A new entry is created with ``session.create_entry()``; an existing
        one is changed with ``session.apply_modifications()``, deletions
        first.  On success the ledger is cleared and the entry is no longer
        new.  On failure nothing changes locally, so calling ``sync()`` again
        sends exactly the same request.  No retries are done here.

        Args:
            session: the directory session to write through

        Raises:
            ProtocolError: the session could not apply the changes

        """
        if self._is_new:
            attributes, dropped = Modlist(self.ledger).add()
            if dropped:
                logger.debug(
                    "ldapentry.entry.sync.dropped-removals dn=%s count=%d",
                    self._dn,
                    dropped,
                )
            try:
                session.create_entry(self._dn, attributes)
            except ProtocolError as e:
                logger.warning("ldapentry.entry.sync.failed dn=%s error=%s", self._dn, e)
                raise
            self._is_new = False
            logger.info(
                "ldapentry.entry.sync.created dn=%s attributes=%d",
                self._dn,
                len(attributes),
            )
        else:
            ops = self.operations()
            if not ops:
                logger.debug("ldapentry.entry.sync.no-changes dn=%s", self._dn)
                return
            try:
                session.apply_modifications(self._dn, ops)
            except ProtocolError as e:
                logger.warning("ldapentry.entry.sync.failed dn=%s error=%s", self._dn, e)
                raise
            logger.info(
                "ldapentry.entry.sync.success dn=%s operations=%d", self._dn, len(ops)
            )
        self.ledger.clear()

    # -----------------------
    # Exporting
    # -----------------------

    def export(self, sink: TextIO, cols: int | None = None) -> None:
        """
        Write the entry to ``sink`` as an LDIF record.

        An entry with no values at all is written as a comment saying all
        items are new, followed by the values queued for addition.

        Args:
            sink: a text file-like object

        Keyword Args:
            cols: fold width; defaults to ``LDAPENTRY_LDIF_COLUMNS``

        """
        EntryLDIFWriter(sink, cols=cols).unparse_entry(self)

    def to_ldif(self, cols: int | None = None) -> str:
        """Return the entry as an LDIF record string."""
        sink = io.StringIO()
        self.export(sink, cols=cols)
        return sink.getvalue()
