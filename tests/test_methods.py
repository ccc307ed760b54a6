import pytest

from scriptit.scriptit_methods import dispatch
from scriptit.scriptit_datatypes import EvaluationError, MethodNotFoundError


def test_string_methods():
    assert dispatch("abc", "upper", []) == "ABC"
    assert dispatch("a,b,,c", "split", [","]) == ["a", "b", "", "c"]
    assert dispatch("a b  c", "split", []) == ["a", "b", "c"]
    assert dispatch("-", "join", [[1, 2, 3]]) == "1-2-3"
    assert dispatch("hello", "find", ["l"]) == 2
    assert dispatch("hello", "slice", [1, 3]) == "el"
    assert dispatch("hello", "at", [-1]) == "o"
    assert dispatch("7", "zfill", [3]) == "007"
    assert dispatch("hello WORLD", "sentence_case", []) == "Hello world"
    assert dispatch("abc", "contains", ["b"]) is True


def test_list_methods_mutate_the_receiver():
    items = [3, 1, 2]
    assert dispatch(items, "append", [4]) is items
    dispatch(items, "sort", [])
    assert items == [1, 2, 3, 4]
    assert dispatch(items, "pop", []) == 4
    dispatch(items, "insert", [0, 0])
    dispatch(items, "insert", [100, 9])
    assert items == [0, 1, 2, 3, 9]
    assert dispatch(items, "index", [2]) == 2
    assert dispatch(items, "index", [42]) == -1
    assert dispatch(items, "clear", []) is None
    assert items == []


def test_list_errors():
    with pytest.raises(EvaluationError) as exc:
        dispatch([], "pop", [], line=7)
    assert "pop from empty list" in exc.value.message
    assert exc.value.line == 7
    with pytest.raises(EvaluationError):
        dispatch([1], "at", [5])


def test_set_and_dict_methods():
    s = {1}
    dispatch(s, "add", [2])
    assert s == {1, 2}
    assert dispatch(s, "has", [2]) is True
    with pytest.raises(EvaluationError):
        dispatch(s, "add", [[1]])

    d = {"a": 1}
    dispatch(d, "update", [{"b": 2}])
    assert dispatch(d, "keys", []) == ["a", "b"]
    assert dispatch(d, "items", []) == [["a", 1], ["b", 2]]
    assert dispatch(d, "get", ["z"]) is None
    assert dispatch(d, "get", ["z", 0]) == 0


def test_universal_methods_apply_to_every_type():
    assert dispatch(5, "type", []) == "int"
    assert dispatch(2.5, "toInt", []) == 2
    assert dispatch("12", "toInt", []) == 12
    assert dispatch(None, "isNone", []) is True
    assert dispatch([1, 2], "len", []) == 2
    assert dispatch(1.5, "is_double", []) is True
    assert dispatch({"k": [1]}, "str", []) == "{'k': [1]}"


def test_unknown_method_and_wrong_arity():
    with pytest.raises(MethodNotFoundError) as exc:
        dispatch(5, "upper", [])
    assert "Unknown method 'upper' on type 'int'" in exc.value.message

    with pytest.raises(MethodNotFoundError) as exc:
        dispatch("abc", "upper", [1])
    assert "Method 'upper' on str does not accept 1 argument(s)" in exc.value.message


def test_set_lookups_reject_unhashable_values():
    for method in ("remove", "contains", "has"):
        with pytest.raises(EvaluationError) as exc:
            dispatch({1, 2}, method, [[1]], line=2)
        assert "unhashable type: 'list'" in exc.value.message
        assert exc.value.line == 2
    assert dispatch({1, 2}, "contains", [2]) is True
