"""
Tests for DirectoryEntry.sync() against a mocked directory session.
"""

import unittest
from unittest.mock import MagicMock

import ldap

from ldapentry.entry import DirectoryEntry
from ldapentry.modlist import Operation
from ldapentry.session import DirectorySession, ProtocolError


def constraint_violation():
    return ldap.CONSTRAINT_VIOLATION({"result": 19, "desc": "Constraint violation", "info": "mail"})


class TestSyncExistingEntry(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock(spec=DirectorySession)
        self.entry = DirectoryEntry.from_record(
            "uid=alice,ou=users,dc=example,dc=com",
            {"uid": ["alice"], "mail": ["alice@example.com"], "cn": ["Alice"]},
        )

    def test_deletions_are_sent_before_additions(self):
        self.entry.add_value("sn", "Johnson")
        self.entry.remove_value("mail", "alice@example.com")
        self.entry.sync(self.session)
        self.session.apply_modifications.assert_called_once_with(
            "uid=alice,ou=users,dc=example,dc=com",
            [
                Operation(ldap.MOD_DELETE, "mail", ["alice@example.com"]),
                Operation(ldap.MOD_ADD, "sn", ["Johnson"]),
            ],
        )
        self.session.create_entry.assert_not_called()

    def test_deletion_of_later_attribute_still_comes_first(self):
        self.entry.add_value("cn", "Ally")
        self.entry.remove_all_values("uid")
        self.entry.sync(self.session)
        ops = self.session.apply_modifications.call_args[0][1]
        self.assertEqual([op.kind for op in ops], [ldap.MOD_DELETE, ldap.MOD_ADD])
        self.assertEqual([op.attribute for op in ops], ["uid", "cn"])

    def test_success_clears_the_ledger(self):
        self.entry.add_value("sn", "Johnson")
        with self.assertLogs("ldapentry.entry", level="INFO"):
            self.entry.sync(self.session)
        self.assertFalse(self.entry.has_changes)
        self.assertFalse(self.entry.is_new)
        # the live view is untouched by syncing
        self.assertEqual(self.entry.get_value("sn"), ["Johnson"])

    def test_second_sync_sends_nothing(self):
        self.entry.add_value("sn", "Johnson")
        self.entry.sync(self.session)
        self.session.reset_mock()
        with self.assertLogs("ldapentry.entry", level="DEBUG") as logs:
            self.entry.sync(self.session)
        self.session.apply_modifications.assert_not_called()
        self.assertIn("no-changes", logs.output[0])

    def test_failure_keeps_the_ledger(self):
        self.session.apply_modifications.side_effect = ProtocolError(
            "Could not modify entry", dn=self.entry.get_dn(), error=constraint_violation()
        )
        self.entry.remove_value("mail", "alice@example.com")
        self.entry.add_value("mail", "ajohnson@example.com")
        with self.assertRaises(ProtocolError) as cm:
            self.entry.sync(self.session)
        self.assertEqual(cm.exception.result, 19)
        first_ops = self.session.apply_modifications.call_args[0][1]

        self.session.apply_modifications.side_effect = None
        self.entry.sync(self.session)
        second_ops = self.session.apply_modifications.call_args[0][1]
        self.assertEqual(first_ops, second_ops)
        self.assertEqual(self.session.apply_modifications.call_count, 2)
        self.assertFalse(self.entry.has_changes)

    def test_failure_is_logged(self):
        self.session.apply_modifications.side_effect = ProtocolError("Could not modify entry")
        self.entry.add_value("sn", "Johnson")
        with self.assertLogs("ldapentry.entry", level="WARNING") as logs:
            with self.assertRaises(ProtocolError):
                self.entry.sync(self.session)
        self.assertIn("ldapentry.entry.sync.failed", logs.output[0])

    def test_operations_preview_matches_sync(self):
        self.entry.remove_value("cn", "Alice")
        self.entry.add_value("cn", "Alice Johnson")
        preview = self.entry.operations()
        self.entry.sync(self.session)
        self.assertEqual(self.session.apply_modifications.call_args[0][1], preview)


class TestSyncNewEntry(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock(spec=DirectorySession)
        self.entry = DirectoryEntry("uid=dave,ou=users,dc=example,dc=com")
        self.entry.add_value("uid", "dave")
        self.entry.add_value("objectClass", "top")
        self.entry.add_value("objectClass", "account")

    def test_creates_the_entry(self):
        self.entry.sync(self.session)
        self.session.create_entry.assert_called_once_with(
            "uid=dave,ou=users,dc=example,dc=com",
            {"objectClass": ["top", "account"], "uid": ["dave"]},
        )
        self.session.apply_modifications.assert_not_called()
        self.assertFalse(self.entry.is_new)
        self.assertFalse(self.entry.has_changes)

    def test_later_changes_are_modifications(self):
        self.entry.sync(self.session)
        self.entry.add_value("description", "Dave's account")
        self.entry.sync(self.session)
        self.session.apply_modifications.assert_called_once_with(
            "uid=dave,ou=users,dc=example,dc=com",
            [Operation(ldap.MOD_ADD, "description", ["Dave's account"])],
        )

    def test_removed_values_are_not_created(self):
        self.entry.add_value("description", "temporary")
        self.entry.remove_value("description", "temporary")
        with self.assertLogs("ldapentry.entry", level="DEBUG") as logs:
            self.entry.sync(self.session)
        self.session.create_entry.assert_called_once_with(
            "uid=dave,ou=users,dc=example,dc=com",
            {"objectClass": ["top", "account"], "uid": ["dave"]},
        )
        self.assertTrue(any("dropped-removals" in line for line in logs.output))

    def test_failure_keeps_entry_new(self):
        self.session.create_entry.side_effect = ProtocolError(
            "Could not create entry", error=ldap.ALREADY_EXISTS({"desc": "Already exists"})
        )
        with self.assertRaises(ProtocolError):
            self.entry.sync(self.session)
        self.assertTrue(self.entry.is_new)
        self.assertEqual(self.entry.pending_additions["objectClass"], ["top", "account"])

        self.session.create_entry.side_effect = None
        self.entry.sync(self.session)
        first, second = self.session.create_entry.call_args_list
        self.assertEqual(first, second)


class TestProtocolError(unittest.TestCase):

    def test_details_from_ldap_error(self):
        err = ProtocolError("Could not modify entry", dn="uid=alice", error=constraint_violation())
        self.assertEqual(err.result, 19)
        self.assertEqual(err.desc, "Constraint violation")
        self.assertEqual(err.info, "mail")
        self.assertEqual(
            str(err), "Could not modify entry dn=uid=alice: Constraint violation (mail)"
        )

    def test_without_ldap_error(self):
        err = ProtocolError("No such entry", dn="uid=nobody")
        self.assertIsNone(err.result)
        self.assertEqual(str(err), "No such entry dn=uid=nobody")
