"""
Bookkeeping of local mutations not yet written to the directory.
"""

from ldap.cidict import cidict


class MutationLedger:
    """
    Two parallel records of values queued for the server: additions and
    removals, each ``{attribute: [value, ...]}``.

    The ledger is write-ahead only.  It never looks at the entry's current
    values and never collapses duplicates: whatever was recorded is what gets
    sent.
    """

    def __init__(self) -> None:
        self._additions: cidict = cidict()
        self._removals: cidict = cidict()

    def __bool__(self) -> bool:
        return bool(len(self._additions) or len(self._removals))

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}: additions={self.additions()!r} "
            f"removals={self.removals()!r}>"
        )

    @staticmethod
    def _record(store: cidict, attr: str, value: str) -> None:
        if attr in store:
            store[attr].append(value)
        else:
            store[attr] = [value]

    def record_add(self, attr: str, value: str) -> None:
        self._record(self._additions, attr, value)

    def record_remove(self, attr: str, value: str) -> None:
        self._record(self._removals, attr, value)

    def additions(self) -> dict[str, list[str]]:
        """Return a copy of the queued additions, keys sorted."""
        return {attr: list(self._additions[attr]) for attr in sorted(self._additions.keys())}

    def removals(self) -> dict[str, list[str]]:
        """Return a copy of the queued removals, keys sorted."""
        return {attr: list(self._removals[attr]) for attr in sorted(self._removals.keys())}

    def drain(self) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
        """
        Return ``(removals, additions)``.

        Draining does not clear the ledger; the caller calls :py:meth:`clear`
        once the changes are known to be on the server.
        """
        return self.removals(), self.additions()

    def clear(self) -> None:
        self._additions = cidict()
        self._removals = cidict()
