"""
Script Gate - Parameter Validator Tests
"""
import pytest
from pydantic import ValidationError

from scriptgate.core.exceptions import ParameterValidationError
from scriptgate.executor.params import (
    ParameterDefinition,
    ParameterType,
    sanitize_string,
    validate_parameters,
)


def p(name, type_="string", **kwargs) -> ParameterDefinition:
    return ParameterDefinition(name=name, description=f"{name} parameter", type=type_, **kwargs)


DISK_USAGE = [
    p("path", default_value="."),
    p("min-size", "number", default_value=0),
    p(
        "format",
        default_value="text",
        validation_pattern="^(text|json)$",
        validation_message="Format must be one of: text, json",
    ),
]


def test_defaults_fill_missing_values():
    assert validate_parameters({}, DISK_USAGE) == {"path": ".", "min-size": 0, "format": "text"}


def test_none_params_treated_as_empty():
    assert validate_parameters(None, DISK_USAGE)["format"] == "text"


def test_output_follows_definition_order():
    result = validate_parameters({"format": "json", "path": "/var"}, DISK_USAGE)
    assert list(result) == ["path", "min-size", "format"]


def test_optional_without_default_is_omitted():
    assert validate_parameters({}, [p("label")]) == {}


def test_null_value_counts_as_absent():
    assert validate_parameters({"format": None}, DISK_USAGE)["format"] == "text"


def test_unknown_parameters_are_dropped():
    result = validate_parameters({"format": "json", "rm": "-rf"}, DISK_USAGE)
    assert "rm" not in result


def test_non_mapping_rejected():
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters(["format"], DISK_USAGE)
    assert exc.value.errors == ["Parameters must be an object"]


@pytest.mark.parametrize("raw", ["TRUE", "true", "True", True])
def test_boolean_truthy_forms(raw):
    assert validate_parameters({"verbose": raw}, [p("verbose", "boolean")]) == {"verbose": True}


@pytest.mark.parametrize("raw", ["FALSE", "false", False])
def test_boolean_falsy_forms(raw):
    assert validate_parameters({"verbose": raw}, [p("verbose", "boolean")]) == {"verbose": False}


@pytest.mark.parametrize("raw", ["maybe", "1", 1, "yes"])
def test_boolean_rejects_other_values(raw):
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"verbose": raw}, [p("verbose", "boolean")])
    assert exc.value.errors == ["Parameter verbose must be a boolean (true/false)"]


@pytest.mark.parametrize("raw, expected", [
    (5, 5), (2.5, 2.5), ("42", 42), (" -3 ", -3), ("1.5e3", 1500.0), (".5", 0.5),
])
def test_number_coercion(raw, expected):
    assert validate_parameters({"n": raw}, [p("n", "number")]) == {"n": expected}


@pytest.mark.parametrize("raw", ["abc", "", "1_000", "nan", "inf", True, [1]])
def test_number_rejects_non_numeric(raw):
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"n": raw}, [p("n", "number")])
    assert len(exc.value.errors) == 1
    assert exc.value.errors[0].startswith("Parameter n must be a")


def test_string_is_sanitized():
    result = validate_parameters({"label": "  hello\x00\x07 world\r\nnext\r  "}, [p("label")])
    assert result == {"label": "hello world\nnext"}


def test_string_rejects_non_string():
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"label": 12}, [p("label")])
    assert exc.value.errors == ["Parameter label must be a string"]


def test_sanitize_keeps_tabs_and_newlines():
    assert sanitize_string("a\tb\nc\x1b[0m") == "a\tb\nc[0m"


def test_array_from_list_is_sanitized_elementwise():
    result = validate_parameters({"tags": [" a ", "b\x00"]}, [p("tags", "array")])
    assert result == {"tags": ["a", "b"]}


def test_array_from_json_string():
    result = validate_parameters({"tags": '["x", "y"]'}, [p("tags", "array")])
    assert result == {"tags": ["x", "y"]}


def test_array_from_comma_separated_string():
    result = validate_parameters({"tags": "x, y,,z "}, [p("tags", "array")])
    assert result == {"tags": ["x", "y", "z"]}


def test_array_rejects_non_string_elements():
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"tags": ["a", 1]}, [p("tags", "array")])
    assert exc.value.errors == ["Parameter tags must be a list of strings"]


def test_pattern_applies_after_sanitization():
    result = validate_parameters({"format": "  json\x00 "}, DISK_USAGE)
    assert result["format"] == "json"


def test_pattern_mismatch_uses_configured_message():
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"format": "xml"}, DISK_USAGE)
    assert exc.value.errors == ["Format must be one of: text, json"]


def test_pattern_mismatch_generic_message():
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"code": "abc"}, [p("code", validation_pattern=r"^\d+$")])
    assert exc.value.errors == ["Invalid format for parameter: code"]


def test_all_errors_are_collected():
    defs = [p("name", required=True), p("count", "number"), p("flag", "boolean")]
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"count": "many", "flag": "maybe"}, defs)
    assert exc.value.errors == [
        "Missing required parameter: name",
        "Parameter count must be a valid number",
        "Parameter flag must be a boolean (true/false)",
    ]
    assert "Missing required parameter: name" in exc.value.message


def test_validation_is_idempotent():
    defs = DISK_USAGE + [p("tags", "array"), p("verbose", "boolean")]
    once = validate_parameters(
        {"min-size": "10", "format": " json ", "tags": "a,b", "verbose": "TRUE"}, defs
    )
    assert validate_parameters(once, defs) == once


# ---- definition-time checks ----

def test_default_is_coerced_at_definition_time():
    assert p("n", "number", default_value="7").default_value == 7


def test_default_of_wrong_type_rejected():
    with pytest.raises(ValidationError):
        p("n", "number", default_value="seven")


def test_required_with_default_rejected():
    with pytest.raises(ValidationError):
        p("n", "number", required=True, default_value=1)


def test_default_must_match_pattern():
    with pytest.raises(ValidationError):
        p("format", default_value="xml", validation_pattern="^(text|json)$")


def test_invalid_regex_rejected():
    with pytest.raises(ValidationError):
        p("format", validation_pattern="(unclosed")


def test_pattern_only_on_strings():
    with pytest.raises(ValidationError):
        p("n", "number", validation_pattern=r"^\d+$")


@pytest.mark.parametrize("name", ["", "-flag", "a b", "x=y", "../etc"])
def test_parameter_names_must_be_flag_safe(name):
    with pytest.raises(ValidationError):
        p(name)


def test_unknown_type_rejected():
    with pytest.raises(ValidationError):
        p("n", "date")


def test_type_enum_round_trips_from_json():
    defn = ParameterDefinition.model_validate(
        {"name": "n", "description": "d", "type": "number", "default_value": 3}
    )
    assert defn.type is ParameterType.number


@pytest.mark.parametrize("raw", ["9" * 5000, 10 ** 5000, -(10 ** 80), "1" + "0" * 80], ids=["str_5000_digits", "int_10e5000", "int_neg_10e80", "str_10e80"])
def test_number_rejects_oversized_numerals(raw):
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({"n": raw}, [p("n", "number")])
    assert exc.value.errors == ["Parameter n must be a valid number"]


def test_number_accepts_large_but_bounded_integers():
    assert validate_parameters({"n": "9" * 30}, [p("n", "number")]) == {"n": int("9" * 30)}


@pytest.mark.parametrize("definition, raw", [
    (p("label"), "a\ud800b"),
    (p("tags", "array"), ["ok", "a\ud800b"]),
    (p("tags", "array"), "ok,a\ud800b"),
])
def test_unencodable_text_rejected(definition, raw):
    with pytest.raises(ParameterValidationError) as exc:
        validate_parameters({definition.name: raw}, [definition])
    assert exc.value.errors == [f"Parameter {definition.name} contains invalid characters"]
