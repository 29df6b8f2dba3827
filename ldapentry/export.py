"""
LDIF export of directory entries.

:py:class:`EntryLDIFWriter` extends python-ldap's :py:class:`ldif.LDIFWriter`
with comment lines, so that an entry that only exists locally can still be
written out with a note saying so.
"""

from typing import TYPE_CHECKING, TextIO

from ldif import LDIFWriter

from .conf import encoding, ldif_columns

if TYPE_CHECKING:
    from .entry import DirectoryEntry

#: Comment written in place of the live values for an entry with no baseline
NEW_ITEMS_COMMENT = "All items in this file are new."


class EntryLDIFWriter(LDIFWriter):
    """
    LDIF writer that knows how to write comments.

    Values that are not LDIF-safe are base64-encoded and every line longer
    than ``cols`` is folded with a single leading space, both exactly as
    :py:class:`ldif.LDIFWriter` does it.

    Args:
        output_file: a text file-like object to write to

    Keyword Args:
        base64_attrs: attribute names whose values are always base64-encoded
        cols: fold width; defaults to ``LDAPENTRY_LDIF_COLUMNS``
        line_sep: line separator

    """

    def __init__(
        self,
        output_file: TextIO,
        base64_attrs: list[str] | None = None,
        cols: int | None = None,
        line_sep: str = "\n",
    ) -> None:
        super().__init__(
            output_file,
            base64_attrs=base64_attrs,
            cols=cols or ldif_columns(),
            line_sep=line_sep,
        )

    def unparse_comment(self, text: str) -> None:
        """Write ``text`` as a (folded) ``#`` comment line."""
        self._unfold_lines(f"# {text}")

    def unparse_values(self, attributes: dict[str, list[str]]) -> None:
        """
        Write one ``attr: value`` line per value, attributes in the order
        given.
        """
        codec = encoding()
        for attr, values in attributes.items():
            for value in values:
                self._unparseAttrTypeandValue(attr, value.encode(codec))

    def unparse_entry(self, entry: "DirectoryEntry") -> None:
        """
        Write ``entry`` as one LDIF record.

        The record starts with the ``dn:`` line.  An entry that has no
        baseline on the server (it is new, or it has no values at all) is
        written as the :py:data:`NEW_ITEMS_COMMENT` comment followed by the
        values queued for addition.  Any other entry is written from its live
        values, one line per value.  The record ends with an empty line.

        Args:
            entry: the entry to write

        """
        self._unparseAttrTypeandValue("dn", entry.get_dn().encode(encoding()))
        if entry.is_new or not entry.store:
            self.unparse_comment(NEW_ITEMS_COMMENT)
            self.unparse_values(entry.ledger.additions())
        else:
            self.unparse_values(entry.store.as_dict())
        # an empty line is the record separator
        self._unfold_lines("")
        self.records_written += 1
