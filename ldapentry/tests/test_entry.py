"""
Tests for DirectoryEntry construction, reading and mutation.
"""

import unittest

from ldapentry.entry import DirectoryEntry


class TestDirectoryEntryFromRecord(unittest.TestCase):
    """Entries built from what the server returned."""

    def setUp(self):
        self.attributes = {
            "cn": ["developers"],
            "gidNumber": ["2001"],
            "memberUid": ["alice", "bob"],
            "objectClass": ["posixGroup", "top"],
        }
        self.entry = DirectoryEntry.from_record(
            "cn=developers,ou=groups,dc=example,dc=com", self.attributes
        )

    def test_baseline_round_trips(self):
        self.assertEqual(set(self.entry.get_keys()), set(self.attributes))
        for attr, values in self.attributes.items():
            self.assertEqual(self.entry.get_value(attr), values)

    def test_not_new_and_no_changes(self):
        self.assertFalse(self.entry.is_new)
        self.assertFalse(self.entry.has_changes)
        self.assertEqual(self.entry.pending_additions, {})
        self.assertEqual(self.entry.pending_removals, {})

    def test_get_dn(self):
        self.assertEqual(self.entry.get_dn(), "cn=developers,ou=groups,dc=example,dc=com")
        self.assertEqual(repr(self.entry), "<DirectoryEntry: cn=developers,ou=groups,dc=example,dc=com>")

    def test_get_first_value(self):
        self.assertEqual(self.entry.get_first_value("memberUid"), "alice")
        self.assertEqual(self.entry.get_first_value("description"), "")

    def test_get_value_missing(self):
        self.assertEqual(self.entry.get_value("description"), [])

    def test_contains_and_len(self):
        self.assertIn("memberuid", self.entry)
        self.assertNotIn("description", self.entry)
        self.assertEqual(len(self.entry), 4)

    def test_add_value(self):
        self.entry.add_value("memberUid", "charlie")
        self.assertEqual(self.entry.get_value("memberUid"), ["alice", "bob", "charlie"])
        self.assertEqual(self.entry.pending_additions, {"memberUid": ["charlie"]})
        self.assertTrue(self.entry.has_changes)

    def test_add_value_new_attribute(self):
        self.entry.add_value("description", "Developers")
        self.assertIn("description", self.entry.get_keys())
        self.assertEqual(self.entry.pending_additions, {"description": ["Developers"]})

    def test_add_then_remove(self):
        self.entry.add_value("memberUid", "charlie")
        self.entry.remove_value("memberUid", "charlie")
        self.assertNotIn("charlie", self.entry.get_value("memberUid"))
        self.assertEqual(self.entry.pending_additions, {"memberUid": ["charlie"]})
        self.assertEqual(self.entry.pending_removals, {"memberUid": ["charlie"]})

    def test_remove_value(self):
        self.entry.remove_value("memberUid", "alice")
        self.assertEqual(self.entry.get_value("memberUid"), ["bob"])
        self.assertEqual(self.entry.pending_removals, {"memberUid": ["alice"]})

    def test_remove_value_records_each_occurrence(self):
        self.entry.add_value("memberUid", "bob")
        self.entry.remove_value("memberUid", "bob")
        self.assertEqual(self.entry.get_value("memberUid"), ["alice"])
        self.assertEqual(self.entry.pending_removals, {"memberUid": ["bob", "bob"]})

    def test_remove_value_last_value_drops_key(self):
        self.entry.remove_value("gidNumber", "2001")
        self.assertNotIn("gidNumber", self.entry.get_keys())
        self.assertEqual(self.entry.get_value("gidNumber"), [])

    def test_remove_value_missing_is_a_noop(self):
        self.entry.remove_value("memberUid", "zed")
        self.entry.remove_value("description", "zed")
        self.assertEqual(self.entry.get_value("memberUid"), ["alice", "bob"])
        self.assertFalse(self.entry.has_changes)

    def test_remove_all_values(self):
        self.entry.remove_all_values("memberUid")
        self.assertNotIn("memberUid", self.entry.get_keys())
        self.assertEqual(self.entry.pending_removals, {"memberUid": ["alice", "bob"]})

    def test_remove_all_values_missing_is_a_noop(self):
        self.entry.remove_all_values("description")
        self.assertFalse(self.entry.has_changes)


class TestNewDirectoryEntry(unittest.TestCase):
    """Entries built locally."""

    def setUp(self):
        self.entry = DirectoryEntry("uid=dave,ou=users,dc=example,dc=com")

    def test_starts_empty(self):
        self.assertTrue(self.entry.is_new)
        self.assertEqual(self.entry.get_keys(), [])
        self.assertFalse(self.entry.has_changes)

    def test_any_strings_are_accepted(self):
        self.entry.add_value("", "")
        self.entry.add_value("x-not-in-any-schema", "   ")
        self.assertEqual(self.entry.get_value(""), [""])
        self.assertEqual(self.entry.get_value("x-not-in-any-schema"), ["   "])

    def test_add_value(self):
        self.entry.add_value("uid", "dave")
        self.entry.add_value("objectClass", "posixAccount")
        self.assertEqual(self.entry.get_keys(), ["objectClass", "uid"])
        self.assertEqual(
            self.entry.pending_additions,
            {"objectClass": ["posixAccount"], "uid": ["dave"]},
        )
