from __future__ import annotations

import unittest

from werkzeug.datastructures import MultiDict

from routine_fakes import FakeRoutineRepository
from routinectl.services.form_state import FORM_MODE_ADD, FORM_MODE_EDIT, hydrate_from_fields
from routinectl.services.submit import submit_routine

BACKUP = "CREATE DEFINER=`root`@`%` PROCEDURE `p`() BEGIN END"


def _fields(**overrides) -> MultiDict:
    fields = {
        "item_name": "p",
        "item_type": "PROCEDURE",
        "item_definition": "BEGIN SELECT 2; END",
        "item_securitytype": "DEFINER",
        "item_original_name": "p",
        "item_original_type": "PROCEDURE",
    }
    fields.update(overrides)
    return MultiDict(fields)


class SubmitCreateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repository = FakeRoutineRepository()

    def test_create_runs_one_statement(self) -> None:
        state = hydrate_from_fields(_fields(), FORM_MODE_ADD)

        outcome = submit_routine(self.repository, "shop", state, is_edit=False)

        self.assertEqual(0, outcome.error_count)
        self.assertEqual(
            ["CREATE PROCEDURE `p`() NOT DETERMINISTIC SQL SECURITY DEFINER BEGIN SELECT 2; END"],
            self.repository.executed,
        )
        self.assertEqual(self.repository.executed[0], outcome.query)
        self.assertEqual("Routine `p` has been created.", outcome.message.text)

    def test_validation_errors_skip_the_database(self) -> None:
        state = hydrate_from_fields(_fields(item_name="", item_definition=""), FORM_MODE_ADD)

        outcome = submit_routine(self.repository, "shop", state, is_edit=False)

        self.assertEqual(2, outcome.error_count)
        self.assertEqual([], self.repository.executed)
        self.assertIn("One or more errors have occurred", outcome.message.text)
        self.assertIn("<li>You must provide a routine name!</li>", outcome.message.text)

    def test_server_rejection_is_reported(self) -> None:
        self.repository.fail_on["CREATE PROCEDURE"] = "#1304 - PROCEDURE p already exists"
        state = hydrate_from_fields(_fields(), FORM_MODE_ADD)

        outcome = submit_routine(self.repository, "shop", state, is_edit=False)

        self.assertEqual(1, outcome.error_count)
        self.assertIn("already exists", outcome.message.text)


class SubmitEditTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repository = FakeRoutineRepository()
        self.repository.definitions[("p", "PROCEDURE")] = BACKUP

    def test_edit_drops_then_creates(self) -> None:
        state = hydrate_from_fields(_fields(), FORM_MODE_EDIT)

        outcome = submit_routine(self.repository, "shop", state, is_edit=True)

        self.assertEqual(0, outcome.error_count)
        self.assertEqual("DROP PROCEDURE `p`;\n", self.repository.executed[0])
        self.assertTrue(self.repository.executed[1].startswith("CREATE PROCEDURE `p`()"))
        self.assertTrue(outcome.query.startswith("DROP PROCEDURE `p`;\n"))
        self.assertEqual("Routine `p` has been modified.", outcome.message.text)

    def test_rename_drops_the_original(self) -> None:
        state = hydrate_from_fields(
            _fields(item_name="q", item_type="FUNCTION", item_returntype="INT",
                    item_definition="RETURN 1"),
            FORM_MODE_EDIT,
        )

        submit_routine(self.repository, "shop", state, is_edit=True)

        self.assertEqual("DROP PROCEDURE `p`;\n", self.repository.executed[0])
        self.assertTrue(self.repository.executed[1].startswith("CREATE FUNCTION `q`()"))

    def test_failed_create_restores_backup(self) -> None:
        self.repository.fail_on["CREATE PROCEDURE"] = "#1064 - syntax error"
        state = hydrate_from_fields(_fields(), FORM_MODE_EDIT)

        outcome = submit_routine(self.repository, "shop", state, is_edit=True)

        self.assertEqual(1, outcome.error_count)
        self.assertEqual(BACKUP, self.repository.executed[-1])
        self.assertEqual(3, len(self.repository.executed))
        self.assertNotIn("failed to restore", outcome.message.text)

    def test_failed_restore_is_reported(self) -> None:
        self.repository.fail_on["CREATE PROCEDURE"] = "#1064 - syntax error"
        self.repository.fail_on["CREATE DEFINER"] = "#1227 - access denied"
        state = hydrate_from_fields(_fields(), FORM_MODE_EDIT)

        outcome = submit_routine(self.repository, "shop", state, is_edit=True)

        self.assertEqual(2, outcome.error_count)
        self.assertIn("Sorry, we failed to restore the dropped routine.", outcome.message.text)
        self.assertIn("#1227 - access denied", outcome.message.text)

    def test_failed_drop_keeps_the_original(self) -> None:
        self.repository.fail_on["DROP"] = "#1370 - alter routine command denied"
        state = hydrate_from_fields(_fields(), FORM_MODE_EDIT)

        outcome = submit_routine(self.repository, "shop", state, is_edit=True)

        self.assertEqual(1, outcome.error_count)
        self.assertEqual(["DROP PROCEDURE `p`;\n"], self.repository.executed)

    def test_invalid_original_kind(self) -> None:
        state = hydrate_from_fields(_fields(item_original_type="EVENT"), FORM_MODE_EDIT)

        outcome = submit_routine(self.repository, "shop", state, is_edit=True)

        self.assertEqual(1, outcome.error_count)
        self.assertIn('Invalid routine type: "EVENT"', outcome.message.text)
        self.assertEqual([], self.repository.executed)


if __name__ == "__main__":
    unittest.main()
