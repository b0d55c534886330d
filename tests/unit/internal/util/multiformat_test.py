import hashlib
from collections import OrderedDict
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from unittest import mock

import pytest

from dependency_graph_resolver.internal.util.multiformat import (
    MultiformatDeserializableMixin,
    MultiformatModelMixin,
    MultiformatSerializableMixin,
    _normalize,
)

###############################################################################
# BRANCH LEDGER
###############################################################################
"""
## _normalize(value: Any)
B01: case Path() -> value.as_posix()
B02: case Enum() -> value.value
B03: case Mapping() -> key-sorted normalized mapping
B04: case set() | frozenset() -> sorted normalized list
B05: case list() | tuple() -> normalized list
B06: case datetime() | date() -> isoformat()
B07: case _ -> unchanged

## MultiformatSerializableMixin
B08: to_mapping() not implemented -> NotImplementedError
B09: mapping_hash() -> sha512 of sorted compact JSON
B10: to_json() -> json.dumps(ensure_ascii=False, indent=2, sort_keys=True)
B11: to_yaml() with PyYAML -> yaml.safe_dump(...)
B12: to_yaml() without PyYAML -> RuntimeError
B13: to_toml() -> None values dropped, keys sorted
B14: serialize() json | yaml | toml | other -> ValueError
B15: flat_summary() ordering, exclusion and empty handling
B16: __str__ -> flat_summary()

## MultiformatDeserializableMixin
B17: from_mapping() not implemented -> NotImplementedError
B18: deserialize() pipeline: parse -> coerce -> preprocess -> from_mapping -> postprocess
B19: from_file() with explicit fmt skips suffix inference
B20: _infer_format_from_suffix() .json | .yaml/.yml | .toml | other -> ValueError
B21: _parse_text() json (empty -> {}) | yaml single | yaml multi -> ValueError | toml | other -> ValueError
B22: _coerce_root_mapping() mapping passes | non-mapping -> TypeError
B23: _postprocess_instance() sets source_description when empty; keeps existing; tolerates setter failure
"""

###############################################################################
# FIXTURES
###############################################################################


class SampleEnum(Enum):
    VALUE1 = "one"
    VALUE2 = "two"


class _Serializable(MultiformatSerializableMixin):
    def __init__(self, data):
        self.data = data

    def to_mapping(self):
        return self.data


class _Model(MultiformatModelMixin):
    def __init__(self, data):
        self.data = data
        self.source_description = None

    def to_mapping(self):
        return self.data

    @classmethod
    def from_mapping(cls, mapping, **_):
        return cls(dict(mapping))


###############################################################################
# _normalize
###############################################################################


@pytest.mark.parametrize(
    "value, expected",
    [
        (Path("/test/path"), "/test/path"),  # B01
        (SampleEnum.VALUE1, "one"),  # B02
        ({"b": 1, "a": 2}, {"a": 2, "b": 1}),  # B03
        ({1, 3, 2}, [1, 2, 3]),  # B04
        (frozenset([1, 3, 2]), [1, 2, 3]),  # B04
        ((3, 1, 2), [3, 1, 2]),  # B05
        (datetime(2023, 1, 1, 12, 0, 0), "2023-01-01T12:00:00"),  # B06
        (date(2023, 1, 1), "2023-01-01"),  # B06
        ("string", "string"),  # B07
        (None, None),  # B07
    ],
)
def test_normalize(value, expected):
    assert _normalize(value) == expected


def test_normalize_nested_mapping_keys_are_sorted():
    result = _normalize({"z": {"b": [Path("/p"), SampleEnum.VALUE2]}, "a": 1})
    assert list(result) == ["a", "z"]
    assert result["z"] == {"b": ["/p", "two"]}


###############################################################################
# MultiformatSerializableMixin
###############################################################################


def test_to_mapping_not_implemented():
    # B08
    class Incomplete(MultiformatSerializableMixin):
        pass

    with pytest.raises(NotImplementedError, match="must implement to_mapping"):
        Incomplete().to_mapping()


def test_mapping_hash_is_stable_across_key_order():
    # B09
    a = _Serializable({"a": 1, "b": {"y": 2, "x": 1}})
    b = _Serializable({"b": {"x": 1, "y": 2}, "a": 1})
    expected = hashlib.new(
        "sha512", b'{"a":1,"b":{"x":1,"y":2}}'
    ).hexdigest()
    assert a.mapping_hash() == b.mapping_hash() == expected


def test_to_json():
    # B10
    with mock.patch("json.dumps", return_value="{}") as dumps:
        _Serializable({"a": 1}).to_json()
    assert dumps.call_args[0][0] == {"a": 1}
    assert dumps.call_args[1] == {"ensure_ascii": False, "indent": 2, "sort_keys": True}


def test_to_yaml_success():
    # B11
    fake_yaml = mock.MagicMock()
    fake_yaml.safe_dump.return_value = "a: 1\n"
    with mock.patch.dict("sys.modules", {"yaml": fake_yaml}):
        assert _Serializable({"a": 1}).to_yaml() == "a: 1\n"
    kwargs = fake_yaml.safe_dump.call_args[1]
    assert kwargs == {"sort_keys": True, "allow_unicode": True, "indent": 2}


def test_to_yaml_import_error():
    # B12
    with mock.patch.dict("sys.modules", {"yaml": None}):
        with pytest.raises(RuntimeError, match="PyYAML not installed"):
            _Serializable({}).to_yaml()


def test_to_toml_drops_none_and_sorts():
    # B13
    text = _Serializable({"b": None, "a": {"d": 1, "c": None}}).to_toml()
    assert "b" not in text
    assert "c =" not in text
    assert "d = 1" in text


@pytest.mark.parametrize("fmt", ["json", "yaml", "toml"])
def test_serialize_dispatch(fmt):
    # B14
    obj = _Serializable({})
    with mock.patch.object(obj, f"to_{fmt}", return_value=f"{fmt}_result") as m:
        assert obj.serialize(fmt=fmt) == f"{fmt}_result"
    m.assert_called_once()


def test_serialize_unknown_format():
    # B14
    with pytest.raises(ValueError, match="unrecognized format: xml"):
        _Serializable({}).serialize(fmt="xml")


@pytest.mark.parametrize(
    "data, kwargs, expected",
    [
        ({"a": 1, "b": 2, "c": 3}, {}, "a: 1 | b: 2 | c: 3"),
        ({"a": 1, "b": 2, "c": 3}, {"first_fields": ("c", "missing")}, "c: 3 | a: 1 | b: 2"),
        ({"a": 1, "b": 2, "c": 3}, {"last_fields": ("a",)}, "b: 2 | c: 3 | a: 1"),
        ({"a": 1, "b": 2}, {"exclude": ("b",)}, "a: 1"),
        ({"a": 1, "b": None, "c": "", "d": []}, {}, "a: 1"),
        ({"a": None}, {"include_empty": True}, "a: None"),
        ({"when": date(2023, 1, 1)}, {}, "when: 2023-01-01"),
        ({"d": {"k": "v"}}, {}, "d: {k: 'v'}"),
        ({"l": [1, 2]}, {}, "l: [1, 2]"),
    ],
)
def test_flat_summary(data, kwargs, expected):
    # B15
    assert _Serializable(data).flat_summary(**kwargs) == expected


def test_str_delegates_to_flat_summary():
    # B16
    assert str(_Serializable({"a": 1})) == "a: 1"


###############################################################################
# MultiformatDeserializableMixin
###############################################################################


def test_from_mapping_not_implemented():
    # B17
    class Incomplete(MultiformatDeserializableMixin):
        pass

    with pytest.raises(NotImplementedError, match="must implement from_mapping"):
        Incomplete.from_mapping({})


def test_deserialize_pipeline():
    # B18
    with mock.patch.object(_Model, "_parse_text", return_value="parsed") as parse, \
         mock.patch.object(_Model, "_coerce_root_mapping", return_value={"k": "v"}) as coerce, \
         mock.patch.object(_Model, "_preprocess_mapping", return_value={"p": "q"}) as pre, \
         mock.patch.object(_Model, "_postprocess_instance", side_effect=lambda i, **_: i) as post:
        inst = _Model.deserialize("text", fmt="json")

    parse.assert_called_once_with("text", fmt="json", path=None)
    coerce.assert_called_once_with("parsed", fmt="json", path=None)
    pre.assert_called_once_with({"k": "v"}, fmt="json", path=None)
    post.assert_called_once()
    assert inst.data == {"p": "q"}


@pytest.mark.parametrize(
    "method, fmt",
    [(_Model.from_json, "json"), (_Model.from_yaml, "yaml"), (_Model.from_toml, "toml")],
)
def test_format_specific_deserialize(method, fmt):
    with mock.patch.object(_Model, "deserialize", return_value="result") as m:
        assert method("text") == "result"
    m.assert_called_once_with("text", fmt=fmt)


def test_from_file_infers_format_and_sets_source(tmp_path):
    # B19, B23
    path = tmp_path / "model.toml"
    path.write_text('name = "x"\n', encoding="utf-8")
    inst = _Model.from_file(path)
    assert inst.data == {"name": "x"}
    assert inst.source_description == f"toml:{path}"


def test_from_file_explicit_format_skips_inference(tmp_path):
    # B19
    path = tmp_path / "model.txt"
    path.write_text('{"a": 1}', encoding="utf-8")
    with mock.patch.object(_Model, "_infer_format_from_suffix") as infer:
        inst = _Model.from_file(str(path), fmt="json")
    infer.assert_not_called()
    assert inst.data == {"a": 1}


@pytest.mark.parametrize(
    "suffix, expected",
    [(".json", "json"), (".yaml", "yaml"), (".yml", "yaml"), (".toml", "toml")],
)
def test_infer_format_from_suffix(suffix, expected):
    # B20
    assert _Model._infer_format_from_suffix(Path(f"f{suffix}")) == expected


def test_infer_format_from_suffix_unknown():
    # B20
    with pytest.raises(ValueError, match="Cannot infer format from extension"):
        _Model._infer_format_from_suffix(Path("f.txt"))


def test_parse_text_json_and_empty():
    # B21
    assert _Model._parse_text('{"a": 1}', fmt="json", path=None) == {"a": 1}
    assert _Model._parse_text("  ", fmt="json", path=None) == {}


def test_parse_text_toml():
    # B21
    assert _Model._parse_text('a = "b"', fmt="toml", path=None) == {"a": "b"}


def test_parse_text_yaml_single_and_multiple():
    # B21
    fake_yaml = mock.MagicMock()
    fake_yaml.safe_load_all.return_value = iter([{"a": 1}])
    with mock.patch.dict("sys.modules", {"yaml": fake_yaml}):
        assert _Model._parse_text("a: 1", fmt="yaml", path=None) == {"a": 1}

    fake_yaml.safe_load_all.return_value = iter([{"a": 1}, {"b": 2}])
    with mock.patch.dict("sys.modules", {"yaml": fake_yaml}):
        with pytest.raises(ValueError, match="Expected single YAML document"):
            _Model._parse_text("a: 1\n---\nb: 2", fmt="yaml", path=None)


def test_parse_text_unknown_format():
    # B21
    with pytest.raises(ValueError, match="unrecognized format: 'ini'"):
        _Model._parse_text("", fmt="ini", path=None)


@pytest.mark.parametrize("raw", [{"k": "v"}, OrderedDict([("k", "v")])])
def test_coerce_root_mapping_accepts_mappings(raw):
    # B22
    assert _Model._coerce_root_mapping(raw, fmt="json", path=None) is raw


@pytest.mark.parametrize("raw", ["text", 1, []])
def test_coerce_root_mapping_rejects_non_mappings(raw):
    # B22
    with pytest.raises(TypeError, match="expected top-level mapping"):
        _Model._coerce_root_mapping(raw, fmt="json", path=None)


def test_postprocess_keeps_existing_description():
    # B23
    inst = _Model({})
    inst.source_description = "existing"
    assert _Model._postprocess_instance(inst, fmt="json", path=None) is inst
    assert inst.source_description == "existing"


def test_postprocess_tolerates_read_only_description():
    # B23
    class ReadOnly:
        @property
        def source_description(self):
            return None

    inst = ReadOnly()
    assert _Model._postprocess_instance(inst, fmt="json", path=None) is inst
