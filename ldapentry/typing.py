"""
ldapentry type definitions.

This module provides type aliases for the raw LDAP data structures passed
between :py:class:`ldapentry.entry.DirectoryEntry` and the directory session.
"""

#: ``{attribute: [value, ...]}`` with values already decoded to ``str``
RawAttributes = dict[str, list[str]]
#: ``(dn, {attribute: [value, ...]})`` as handed to ``DirectoryEntry.from_record``
RawRecord = tuple[str, RawAttributes]
#: what python-ldap's ``search_s`` returns for a single entry
LDAPData = tuple[str, dict[str, list[bytes]]]
ModifyModListEntry = tuple[int, str, list[bytes]]
ModifyModList = list[ModifyModListEntry]
AddModlist = list[tuple[str, list[bytes]]]
