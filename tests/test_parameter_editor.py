from __future__ import annotations

import unittest

from werkzeug.datastructures import MultiDict

from routine_fakes import make_function, make_procedure
from routinectl.core.models import RoutineParameter
from routinectl.services.form_state import FORM_MODE_ADD, RoutineFormState
from routinectl.services.parameter_editor import (
    OPERATION_ADD,
    OPERATION_CHANGE,
    OPERATION_REMOVE,
    add_parameter,
    apply_parameter_operation,
    parameter_operation,
    remove_parameter,
    toggle_kind,
)


def _state(routine) -> RoutineFormState:
    return RoutineFormState(routine=routine, mode=FORM_MODE_ADD)


class ParameterOperationTests(unittest.TestCase):
    def test_no_operation_fields_selects_nothing(self) -> None:
        self.assertEqual("", parameter_operation(MultiDict({"item_name": "p"})))

    def test_add_wins_over_remove_and_change(self) -> None:
        fields = MultiDict(
            {
                "routine_addparameter": "1",
                "routine_removeparameter": "1",
                "routine_changetype": "1",
            }
        )
        self.assertEqual(OPERATION_ADD, parameter_operation(fields))

    def test_remove_wins_over_change(self) -> None:
        fields = MultiDict({"routine_removeparameter": "x", "routine_changetype": "x"})
        self.assertEqual(OPERATION_REMOVE, parameter_operation(fields))

    def test_zero_valued_field_is_not_a_request(self) -> None:
        fields = MultiDict({"routine_addparameter": "0", "routine_changetype": "go"})
        self.assertEqual(OPERATION_CHANGE, parameter_operation(fields))


class ParameterEditTests(unittest.TestCase):
    def test_add_appends_one_blank_row_and_keeps_existing(self) -> None:
        first = RoutineParameter(direction="IN", name="a", type="INT")
        state = _state(make_procedure("p", first))

        add_parameter(state)

        self.assertEqual(2, state.num_params)
        self.assertIs(first, state.parameters[0])
        self.assertTrue(state.parameters[1].is_blank())

    def test_remove_drops_the_last_row(self) -> None:
        first = RoutineParameter(name="a", type="INT")
        second = RoutineParameter(name="b", type="INT")
        state = _state(make_procedure("p", first, second))

        remove_parameter(state)

        self.assertEqual([first], state.parameters)

    def test_remove_on_empty_list_is_rejected(self) -> None:
        state = _state(make_procedure("p"))
        with self.assertRaises(IndexError):
            remove_parameter(state)
        self.assertEqual(0, state.num_params)

    def test_toggle_flips_kind_and_suggests_previous(self) -> None:
        state = _state(make_procedure("p"))

        toggle_kind(state)
        self.assertEqual("FUNCTION", state.routine.kind)
        self.assertEqual("PROCEDURE", state.toggle_suggestion)

        toggle_kind(state)
        self.assertEqual("PROCEDURE", state.routine.kind)
        self.assertEqual("FUNCTION", state.toggle_suggestion)

    def test_toggle_leaves_parameters_alone(self) -> None:
        param = RoutineParameter(direction="OUT", name="x", type="INT")
        state = _state(make_function("f", param))

        apply_parameter_operation(state, OPERATION_CHANGE)

        self.assertEqual([param], state.parameters)

    def test_unknown_operation_is_a_no_op(self) -> None:
        state = _state(make_procedure("p"))
        apply_parameter_operation(state, "")
        self.assertEqual("PROCEDURE", state.routine.kind)
        self.assertEqual(0, state.num_params)


if __name__ == "__main__":
    unittest.main()
