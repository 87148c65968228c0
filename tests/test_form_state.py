from __future__ import annotations

import unittest

from werkzeug.datastructures import MultiDict

from routine_fakes import FakeRoutineRepository, make_function, make_procedure
from routinectl.core.models import RoutineParameter
from routinectl.services.form_state import (
    FORM_MODE_ADD,
    FORM_MODE_EDIT,
    build_form_state,
    display_parameters,
    hydrate_from_fields,
)


class HydrateFromFieldsTests(unittest.TestCase):
    def test_reads_every_editor_field(self) -> None:
        fields = MultiDict(
            [
                ("item_name", "total"),
                ("item_type", "FUNCTION"),
                ("item_param_dir", "IN"),
                ("item_param_name", "amount"),
                ("item_param_type", "DECIMAL"),
                ("item_param_length", "10,2"),
                ("item_param_opts_num", "UNSIGNED"),
                ("item_param_opts_text", ""),
                ("item_returntype", "VARCHAR"),
                ("item_returnlength", "20"),
                ("item_definition", "RETURN 'x'"),
                ("item_isdeterministic", "on"),
                ("item_securitytype", "INVOKER"),
                ("item_sqldataaccess", "READS SQL DATA"),
                ("item_comment", "sum"),
                ("item_definer", "root@localhost"),
                ("item_original_name", "old_total"),
                ("item_original_type", "PROCEDURE"),
            ]
        )

        state = hydrate_from_fields(fields, FORM_MODE_EDIT)

        routine = state.routine
        self.assertEqual("total", routine.name)
        self.assertEqual("FUNCTION", routine.kind)
        self.assertEqual(
            [RoutineParameter("IN", "amount", "DECIMAL", "10,2", "UNSIGNED", "")],
            routine.parameters,
        )
        self.assertEqual("VARCHAR", routine.return_type)
        self.assertTrue(routine.is_deterministic)
        self.assertEqual("INVOKER", routine.security_type)
        self.assertEqual("READS SQL DATA", routine.sql_data_access)
        self.assertEqual("old_total", state.original_name)
        self.assertEqual("PROCEDURE", state.original_kind)
        self.assertEqual("PROCEDURE", state.toggle_suggestion)

    def test_short_columns_are_padded(self) -> None:
        fields = MultiDict(
            [
                ("item_param_name", "a"),
                ("item_param_name", "b"),
                ("item_param_type", "INT"),
            ]
        )

        state = hydrate_from_fields(fields, FORM_MODE_ADD)

        self.assertEqual(2, state.num_params)
        self.assertEqual("INT", state.parameters[0].type)
        self.assertEqual("", state.parameters[1].type)

    def test_unknown_kind_and_access_fall_back(self) -> None:
        fields = MultiDict({"item_type": "EVENT", "item_sqldataaccess": "EVERYTHING"})

        state = hydrate_from_fields(fields, FORM_MODE_ADD)

        self.assertEqual("PROCEDURE", state.routine.kind)
        self.assertEqual("", state.routine.sql_data_access)
        self.assertEqual("DEFINER", state.routine.security_type)


class BuildFormStateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repository = FakeRoutineRepository()

    def test_fresh_add_gets_one_blank_parameter(self) -> None:
        state = build_form_state(MultiDict({"add_item": "1"}), self.repository, "shop")

        self.assertEqual(FORM_MODE_ADD, state.mode)
        self.assertEqual(1, state.num_params)
        self.assertTrue(state.parameters[0].is_blank())

    def test_add_with_errors_keeps_empty_parameter_list(self) -> None:
        state = build_form_state(
            MultiDict({"add_item": "1"}), self.repository, "shop", error_count=1
        )
        self.assertEqual(0, state.num_params)

    def test_edit_fetches_existing_routine(self) -> None:
        routine = make_function(
            "f", RoutineParameter(direction="", name="x", type="INT")
        )
        self.repository.add_routine(routine)

        state = build_form_state(
            MultiDict({"edit_item": "1", "item_name": "f", "item_type": "FUNCTION"}),
            self.repository,
            "shop",
        )

        self.assertEqual(FORM_MODE_EDIT, state.mode)
        self.assertIs(routine, state.routine)
        self.assertEqual("f", state.original_name)
        self.assertEqual("FUNCTION", state.original_kind)
        self.assertEqual("PROCEDURE", state.toggle_suggestion)

    def test_edit_of_missing_routine_returns_none(self) -> None:
        state = build_form_state(
            MultiDict({"edit_item": "1", "item_name": "ghost", "item_type": "PROCEDURE"}),
            self.repository,
            "shop",
        )
        self.assertIsNone(state)

    def test_edit_round_trip_uses_submitted_fields(self) -> None:
        self.repository.add_routine(make_procedure("p"))
        fields = MultiDict(
            [
                ("edit_item", "1"),
                ("item_name", "p_renamed"),
                ("item_type", "PROCEDURE"),
                ("item_param_dir", "IN"),
                ("item_param_name", "a"),
                ("item_param_type", "INT"),
                ("routine_addparameter", "Add parameter"),
            ]
        )

        state = build_form_state(fields, self.repository, "shop")

        self.assertEqual([], self.repository.get_routine_calls)
        self.assertEqual("p_renamed", state.routine.name)
        self.assertEqual(2, state.num_params)
        self.assertEqual("a", state.parameters[0].name)

    def test_change_type_toggles_kind(self) -> None:
        fields = MultiDict(
            {"add_item": "1", "item_type": "PROCEDURE", "routine_changetype": "1"}
        )

        state = build_form_state(fields, self.repository, "shop")

        self.assertEqual("FUNCTION", state.routine.kind)
        self.assertEqual("PROCEDURE", state.toggle_suggestion)

    def test_remove_drops_last_parameter(self) -> None:
        fields = MultiDict(
            [
                ("add_item", "1"),
                ("item_param_name", "a"),
                ("item_param_name", "b"),
                ("routine_removeparameter", "1"),
            ]
        )

        state = build_form_state(fields, self.repository, "shop")

        self.assertEqual(["a"], [param.name for param in state.parameters])

    def test_remove_on_empty_edit_form_is_ignored(self) -> None:
        fields = MultiDict(
            {"edit_item": "1", "item_name": "p", "routine_removeparameter": "1"}
        )

        with self.assertLogs("routinectl.services.form_state", level="WARNING"):
            state = build_form_state(fields, self.repository, "shop")

        self.assertEqual(0, state.num_params)

    def test_neither_add_nor_edit_yields_nothing(self) -> None:
        self.assertIsNone(
            build_form_state(MultiDict({"routine_changetype": "1"}), self.repository, "shop")
        )


class DisplayParametersTests(unittest.TestCase):
    def test_free_text_fields_are_escaped(self) -> None:
        state = hydrate_from_fields(
            MultiDict(
                {
                    "item_param_name": "<b>",
                    "item_param_type": "enum",
                    "item_param_length": "'a','<x>'",
                }
            ),
            FORM_MODE_ADD,
        )

        rows = display_parameters(state)

        self.assertEqual("&lt;b&gt;", str(rows[0]["name"]))
        self.assertEqual("&#39;a&#39;,&#39;&lt;x&gt;&#39;", str(rows[0]["length"]))
        self.assertEqual("ENUM", rows[0]["type"])
        self.assertEqual(0, rows[0]["index"])


if __name__ == "__main__":
    unittest.main()
