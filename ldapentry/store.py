"""
The live attribute view of a directory entry.

:py:class:`AttributeStore` maps attribute names to the values the entry
currently has, as the caller sees them: the server's baseline with every
local mutation already applied.
"""

from collections.abc import Iterable, Iterator

from ldap.cidict import cidict


class AttributeStore:
    """
    Case-insensitive mapping of attribute name to an ordered list of values.

    Values keep their insertion order within an attribute and duplicates are
    allowed.  An attribute never maps to an empty list: whatever empties an
    attribute also removes its key.  No schema checks are done; any string is
    a valid attribute name or value.

    Args:
        attributes: optional ``{attribute: [value, ...]}`` to start from

    """

    def __init__(self, attributes: dict[str, Iterable[str]] | None = None) -> None:
        self._data: cidict = cidict()
        for attr, values in (attributes or {}).items():
            for value in values:
                self.append(attr, value)

    def __contains__(self, attr: object) -> bool:
        return isinstance(attr, str) and attr in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return len(self._data) > 0

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.as_dict()!r}>"

    def keys(self) -> list[str]:
        """
        Return our attribute names in sorted order.

        The names are spelled the way they were first stored.
        """
        return sorted(self._data.keys())

    def values(self, attr: str) -> list[str]:
        """
        Return a copy of the values of ``attr``, or ``[]`` if it is not set.
        """
        if attr not in self._data:
            return []
        return list(self._data[attr])

    def first_value(self, attr: str) -> str:
        """
        Return the first value of ``attr``, or ``""`` if it is not set.
        """
        if attr not in self._data:
            return ""
        return self._data[attr][0]

    def find(self, attr: str, value: str) -> int:
        """
        Return the index of the first occurrence of ``value`` in ``attr``.

        Returns:
            The index, or ``-1`` if ``attr`` is not set or lacks ``value``.

        """
        if attr not in self._data:
            return -1
        try:
            return self._data[attr].index(value)
        except ValueError:
            return -1

    def contains(self, attr: str, value: str) -> bool:
        """Is ``value`` one of the values of ``attr``?"""
        return self.find(attr, value) >= 0

    def set(self, attr: str, values: Iterable[str]) -> None:
        """
        Replace all values of ``attr``.  Setting no values removes ``attr``.
        """
        values = list(values)
        if values:
            self._data[attr] = values
        else:
            self.remove_all(attr)

    def append(self, attr: str, value: str) -> None:
        """Append ``value`` to ``attr``, creating ``attr`` if needed."""
        if attr in self._data:
            self._data[attr].append(value)
        else:
            self._data[attr] = [value]

    def remove_exact(self, attr: str, value: str) -> list[str]:
        """
        Remove every value of ``attr`` that is exactly equal to ``value``.

        The key is dropped if that leaves ``attr`` with no values.

        Args:
            attr: the attribute to remove from
            value: the value to remove

        Returns:
            The removed occurrences, one element per match.  Empty if
            ``attr`` is not set or has no such value.

        """
        if attr not in self._data:
            return []
        current = self._data[attr]
        removed = [v for v in current if v == value]
        if removed:
            current[:] = [v for v in current if v != value]
        if not current:
            del self._data[attr]
        return removed

    def remove_all(self, attr: str) -> list[str]:
        """
        Drop ``attr`` entirely.

        Returns:
            The values ``attr`` had, ``[]`` if it was not set.

        """
        if attr not in self._data:
            return []
        values = self._data[attr]
        del self._data[attr]
        return values

    def as_dict(self) -> dict[str, list[str]]:
        """Return a plain ``{attribute: [value, ...]}`` copy, keys sorted."""
        return {attr: list(self._data[attr]) for attr in self.keys()}
