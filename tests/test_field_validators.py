"""
Tests for the per-kind field validators and their dispatch.
"""

import logging

import pytest

from pbvalidate.errors import OptionInapplicableError, UnsupportedFieldKindError
from pbvalidate.field_validators import (VALIDATORS, BooleanFieldValidator,
                                         EnumFieldValidator, MessageFieldValidator,
                                         StringFieldValidator, create_validator,
                                         not_set_checker, validator_class)
from pbvalidate.option_registry import OptionRegistry
from pbvalidate.schema import FieldKind
from pbvalidate.violations import MSG_ENTITY_ID_REPEATED, MSG_REQUIRED, ConstraintViolation

DEFAULT_OPTIONS = OptionRegistry.default().snapshot()


class TestDispatch:

    def test_every_kind_has_a_validator(self):
        assert set(VALIDATORS) == set(FieldKind)
        for kind in FieldKind:
            assert validator_class(kind) is VALIDATORS[kind]

    def test_unknown_kind(self):
        with pytest.raises(UnsupportedFieldKindError):
            validator_class("decimal")

    @pytest.mark.parametrize("type_name,field_name,raw,cls", [
        ("Scalars", "s", "x", StringFieldValidator),
        ("Scalars", "flag", True, BooleanFieldValidator),
        ("Scalars", "color", 1, EnumFieldValidator),
        ("Meeting", "start", None, MessageFieldValidator),
    ])
    def test_create_validator(self, make_value, model, type_name, field_name, raw, cls):
        if raw is None:
            raw = model.Time()
        validator = create_validator(make_value(type_name, field_name, raw), DEFAULT_OPTIONS)

        assert type(validator) is cls

    def test_map_dispatches_on_value_kind(self, make_value):
        validator = create_validator(make_value("Collections", "scores", {"a": 1}))

        assert validator.value.kind is FieldKind.INT32
        assert type(validator) is validator_class(FieldKind.INT32)

    def test_not_set_checker(self, make_value):
        assert not_set_checker(FieldKind.STRING).field_value_not_set(make_value("Scalars", "s", ""))


class TestFieldValidator:

    def test_options_of_the_kind_are_applied(self, make_value):
        value = make_value("Time", "hour", 24, {"range": "[0..23]"})

        violations = create_validator(value, DEFAULT_OPTIONS).validate()

        assert len(violations) == 1
        assert violations[0].field_path == ("hour",)

    def test_without_registry_options_only_common_ones_run(self, make_value):
        value = make_value("Time", "hour", 24, {"range": "[0..23]"})

        assert create_validator(value).validate() == []

    def test_several_options_accumulate(self, make_value):
        options = {"required": True, "pattern": "[a-z]+", "distinct": True}
        value = make_value("Collections", "tags", ["a", "B", "a"], options)

        violations = create_validator(value, DEFAULT_OPTIONS).validate()

        assert len(violations) == 2
        assert {v.msg_format for v in violations} == {
            "Values must be distinct.",
            "The string must match the regular expression `%s`.",
        }

    @pytest.mark.parametrize("field_name,raw,options", [
        ("i32", 1, {"pattern": "[0-9]+"}),
        ("s", "a", {"range": "[0..1]"}),
        ("flag", True, {"max": 1}),
        ("color", 1, {"digits": {"integer_max": 1}}),
    ])
    def test_option_of_another_kind_raises(self, make_value, field_name, raw, options):
        value = make_value("Scalars", field_name, raw, options)

        with pytest.raises(OptionInapplicableError):
            create_validator(value, DEFAULT_OPTIONS).validate()

    def test_unregistered_option_names_are_ignored(self, make_value):
        value = make_value("Scalars", "s", "a", {"documentation": "Any text."})

        assert create_validator(value, DEFAULT_OPTIONS).validate() == []

    @pytest.mark.parametrize("field_name,raw", [("i32", 0), ("d", 0.0), ("flag", False)])
    def test_required_warning_on_unsettable_kinds(self, make_value, caplog, field_name, raw):
        value = make_value("Scalars", field_name, raw, {"required": True})

        with caplog.at_level(logging.WARNING, logger="pbvalidate"):
            violations = create_validator(value, DEFAULT_OPTIONS).validate()

        assert violations == []
        assert "has no effect" in caplog.text

    @pytest.mark.parametrize("raw,count", [([], 1), ([0], 0)])
    def test_required_repeated_number_fires_without_warning(self, make_value, caplog, raw, count):
        value = make_value("Collections", "numbers", raw, {"required": True})

        with caplog.at_level(logging.WARNING, logger="pbvalidate"):
            violations = create_validator(value, DEFAULT_OPTIONS).validate()

        assert len(violations) == count
        assert "has no effect" not in caplog.text


class TestIdentifiers:
    """Entity and command identifier conventions."""

    def test_unset_entity_id(self, make_value):
        value = make_value("User", "id", "", is_entity_id=True)

        violations = create_validator(value).validate()

        assert violations == [ConstraintViolation(MSG_REQUIRED, (), ("id",))]

    def test_entity_id_reported_once_when_also_required(self, make_value):
        value = make_value("User", "id", "", {"required": True}, is_entity_id=True)

        assert len(create_validator(value).validate()) == 1

    def test_entity_id_opt_out(self, make_value):
        value = make_value("User", "id", "", {"required": False}, is_entity_id=True)

        assert create_validator(value).validate() == []

    def test_set_entity_id(self, make_value):
        value = make_value("User", "id", "u-1", is_entity_id=True)

        assert create_validator(value).validate() == []

    def test_repeated_entity_id(self, make_value):
        value = make_value("Tagged", "ids", ["a"], is_entity_id=True)

        violations = create_validator(value).validate()

        assert len(violations) == 1
        assert violations[0].msg_format == MSG_ENTITY_ID_REPEATED
        assert violations[0].message == (
            "Entity ID field `acme.test.Tagged.ids` must not be a repeated field."
        )

    def test_command_id_cannot_opt_out(self, make_value):
        value = make_value("CreateUser", "user_id", "", {"required": False}, is_command_id=True)

        assert len(create_validator(value).validate()) == 1

    def test_custom_missing_message(self, make_value):
        value = make_value("User", "id", "", {"if_missing": "ID is mandatory."}, is_entity_id=True)

        assert create_validator(value).validate()[0].message == "ID is mandatory."


class TestMessageFieldValidator:
    """Recursion into nested messages through the nested-validation callback."""

    @staticmethod
    def _recorder(calls):
        def validate_nested(message, field_value):
            calls.append(message)
            return [ConstraintViolation("bad", (), ("hour",))]
        return validate_nested

    def test_nested_violations_are_prefixed(self, make_value, model):
        calls = []
        value = make_value("Meeting", "start", model.Time(hour=25))

        violations = create_validator(value, validate_nested=self._recorder(calls)).validate()

        assert calls == [model.Time(hour=25)]
        assert violations[0].field_path == ("start", "hour")

    def test_unset_message_is_not_recursed_into(self, make_value, model):
        calls = []
        value = make_value("Meeting", "start", model.Time())

        assert create_validator(value, validate_nested=self._recorder(calls)).validate() == []
        assert calls == []

    def test_recurse_into_defaults(self, make_value, model):
        calls = []
        value = make_value("Meeting", "start", model.Time())

        validator = create_validator(value, validate_nested=self._recorder(calls),
                                     recurse_into_defaults=True)

        assert len(validator.validate()) == 1
        assert calls == [model.Time()]

    def test_well_known_types_are_not_recursed_into(self, make_value, model):
        calls = []
        note = model.message_class("google.protobuf.StringValue")(value="x")
        value = make_value("Meeting", "note", note)

        assert create_validator(value, validate_nested=self._recorder(calls)).validate() == []
        assert calls == []

    def test_every_element_of_repeated_and_map_fields(self, make_value, model):
        calls = []
        times = make_value("Collections", "times", [model.Time(hour=1), model.Time(hour=2)])
        schedule = make_value("Collections", "schedule", {"mon": model.Time(hour=3)})

        create_validator(times, validate_nested=self._recorder(calls)).validate()
        create_validator(schedule, validate_nested=self._recorder(calls)).validate()

        assert [t.hour for t in calls] == [1, 2, 3]
