from api_composer.accessors import get_all_values_by_path, get_value_by_path, set_value_by_path


def test_wildcard_fan_out_and_preview():
    doc = {"orders": [{"total": 10}, {"total": 20}]}
    assert get_value_by_path(doc, "orders[*].total", fan_out=True) == [10, 20]
    assert get_value_by_path(doc, "orders[*].total") == 10


def test_nested_wildcards_flatten_in_order():
    doc = {"a": [{"b": [{"c": 1}, {"c": 2}]}, {"b": [{"c": 3}]}]}
    assert get_all_values_by_path(doc, "a[*].b[*].c") == [1, 2, 3]


def test_terminal_wildcard_yields_elements():
    doc = {"tags": ["x", "y"]}
    assert get_all_values_by_path(doc, "tags[*]") == ["x", "y"]
    assert get_value_by_path(doc, "tags") == ["x", "y"]


def test_missing_element_fields_stay_aligned():
    doc = {"orders": [{"total": 1}, {}, {"total": 3}]}
    assert get_all_values_by_path(doc, "orders[*].total") == [1, None, 3]


def test_missing_paths_yield_none():
    doc = {"a": {"b": 1}, "s": "text"}
    assert get_value_by_path(doc, "a.c") is None
    assert get_value_by_path(doc, "s.length") is None
    assert get_value_by_path(doc, "missing[*].x") is None
    assert get_all_values_by_path(doc, "missing[*].x") == []
    assert get_all_values_by_path(doc, "a[*].x") == []


def test_empty_array_fans_out_to_nothing():
    assert get_all_values_by_path({"orders": []}, "orders[*].total") == []


def test_unescaped_dotted_key_fallback():
    doc = {"responses": {"gpt-3.5-turbo": {"score": 9}}}
    assert get_value_by_path(doc, "responses.gpt-3.5-turbo.score") == 9
    assert get_value_by_path(doc, "responses.gpt-3\\.5-turbo.score") == 9


def test_set_value_by_path_creates_parents():
    row = set_value_by_path({}, "item.title", "A")
    row = set_value_by_path(row, "item.link", "http://x")
    assert row == {"item": {"title": "A", "link": "http://x"}}


def test_set_value_by_path_without_segments_replaces_data():
    assert set_value_by_path({"a": 1}, ".", "v") == "v"
    assert set_value_by_path({"a": 1}, "(root)", "v") == "v"
