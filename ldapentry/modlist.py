"""
Turning queued entry changes into directory write requests.

:py:class:`Modlist` reads a :py:class:`~ldapentry.ledger.MutationLedger` and
builds either the ordered :py:class:`Operation` list for a modify request, or
the initial attribute set for an add request.
"""

from collections import Counter, namedtuple
from typing import Any

from ldap import modlist

from ldapentry import ldap

from .conf import encoding
from .ledger import MutationLedger
from .typing import AddModlist, ModifyModListEntry, RawAttributes


class Operation(namedtuple("Operation", ["kind", "attribute", "values"])):
    """
    One attribute change of a modify request.

    Attributes:
        kind: :py:data:`ldap.MOD_DELETE` or :py:data:`ldap.MOD_ADD`
        attribute: the attribute name
        values: the values to delete from or add to ``attribute``

    """

    __slots__ = ()

    @property
    def is_delete(self) -> bool:
        return self.kind == ldap.MOD_DELETE  # type: ignore[attr-defined]

    def as_modlist(self, codec: str | None = None) -> ModifyModListEntry:
        """
        Return the tuple python-ldap's ``modify_s`` wants for this operation.

        Keyword Args:
            codec: encoding for the values; defaults to ``LDAPENTRY_ENCODING``

        """
        codec = codec or encoding()
        return (self.kind, self.attribute, [v.encode(codec) for v in self.values])

    def __str__(self) -> str:
        verb = "delete" if self.is_delete else "add"
        return f"{verb} {self.attribute} ({len(self.values)} values)"


class Modlist:
    """
    Helper for constructing directory write requests from a ledger.

    Args:
        ledger: the ledger whose queued changes we are reading

    """

    def __init__(self, ledger: MutationLedger) -> None:
        self.ledger = ledger

    def _get_operations(self, data: dict[str, list[str]], kind: int) -> list[Operation]:
        return [Operation(kind, attr, list(values)) for attr, values in data.items()]

    def update(self) -> list[Operation]:
        """
        Build the operation list for modifying an entry that exists on the
        server.

        All removals come first, one ``MOD_DELETE`` per attribute, then all
        additions, one ``MOD_ADD`` per attribute.  Within each group the
        attributes are in sorted order.  Sending removals first lets a value
        be moved or replaced without tripping uniqueness constraints on the
        server.

        Returns:
            The ordered operations; empty if nothing is queued.

        """
        removals, additions = self.ledger.drain()
        d_ops = self._get_operations(removals, ldap.MOD_DELETE)  # type: ignore[attr-defined]
        a_ops = self._get_operations(additions, ldap.MOD_ADD)  # type: ignore[attr-defined]
        return d_ops + a_ops

    def add(self) -> tuple[RawAttributes, int]:
        """
        Build the initial attribute set for creating a brand-new entry.

        A new entry has nothing on the server to remove, so queued removals
        are cancelled against queued additions of the same attribute, one
        occurrence each.  Attributes left with no values are omitted.

        Returns:
            A 2-tuple of the attribute set and the number of queued
            removals that were dropped.

        """
        removals, additions = self.ledger.drain()
        lowered = {attr.lower(): values for attr, values in removals.items()}
        attributes: RawAttributes = {}
        dropped = 0
        for attr, values in additions.items():
            pending = Counter(lowered.pop(attr.lower(), []))
            kept = []
            for value in values:
                if pending[value] > 0:
                    pending[value] -= 1
                    dropped += 1
                else:
                    kept.append(value)
            if kept:
                attributes[attr] = kept
        # removals of attributes that were never added have nothing to cancel
        dropped += sum(len(values) for values in lowered.values())
        return attributes, dropped


def encode_attributes(attributes: dict[str, Any], codec: str | None = None) -> AddModlist:
    """
    Convert ``{attribute: [str, ...]}`` to a modlist suitable for ``add_s``.

    Attributes with no values are dropped.

    Args:
        attributes: the attribute set of the new entry

    Keyword Args:
        codec: encoding for the values; defaults to ``LDAPENTRY_ENCODING``

    """
    codec = codec or encoding()
    encoded = {
        attr: [v.encode(codec) for v in values]
        for attr, values in attributes.items()
        if values
    }
    return modlist.addModlist(encoded)
