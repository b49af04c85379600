import pytest

from api_composer.models import TransformationStep
from api_composer.notify import CollectingNotifier
from api_composer.transforms import TransformationPipeline, TransformContext, default_pipeline, register_transformation


def step(kind, **config):
    return TransformationStep(kind, config)


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def pipeline(notifier):
    return TransformationPipeline(notifier=notifier)


def run(pipeline, value, *steps, record=None):
    return pipeline.apply(value, list(steps), TransformContext(record=record or {}))


ODD_VALUES = [None, "", "text", 0, 3.5, True, [], [1, "a", None], {"a": 1}, {"nested": {"x": [1]}}]


def test_apply_never_raises_for_any_builtin(pipeline):
    for kind in pipeline.kinds():
        for value in ODD_VALUES:
            pipeline.apply(value, [step(kind)])


def test_steps_run_in_order(pipeline):
    assert run(pipeline, "  hello ", step("trim"), step("uppercase")) == "HELLO"
    assert run(pipeline, "hELLO wORLD", step("capitalize")) == "Hello world"


def test_string_kinds_map_over_lists(pipeline):
    assert run(pipeline, ["a", 1, "b"], step("uppercase")) == ["A", 1, "B"]


def test_failed_step_keeps_previous_value_and_warns(pipeline, notifier):
    assert run(pipeline, "banana", step("date-format", format="ISO8601")) == "banana"
    assert notifier.by_level("warning")


def test_failed_step_uses_declared_fallback(pipeline):
    assert run(pipeline, "banana", step("date-format", format="ISO8601", fallback="n/a")) == "n/a"


def test_failure_mid_pipeline_continues(pipeline):
    result = run(pipeline, "banana", step("parse-number"), step("uppercase"))
    assert result == "BANANA"


def test_unknown_kind_is_skipped(pipeline, notifier):
    assert run(pipeline, "x", step("no-such-kind"), step("uppercase")) == "X"
    assert any("no-such-kind" in m for m in notifier.by_level("warning"))


def test_date_format(pipeline):
    iso = "2024-01-15T10:30:00Z"
    assert run(pipeline, iso, step("date-format", format="date")) == "2024-01-15"
    assert run(pipeline, iso, step("date-format", format="ISO8601")) == "2024-01-15T10:30:00+00:00"
    assert run(pipeline, iso, step("date-format", format="RFC822")) == "Mon, 15 Jan 2024 10:30:00 +0000"
    assert run(pipeline, iso, step("date-format", format="%d/%m/%Y")) == "15/01/2024"


def test_epoch_values_are_dates(pipeline):
    assert run(pipeline, 1704067200, step("date-format", format="date")) == "2024-01-01"
    assert run(pipeline, 1704067200000, step("date-format", format="date")) == "2024-01-01"
    assert run(pipeline, "2024-01-01T00:00:00Z", step("timestamp")) == 1704067200000


def test_numbers(pipeline):
    assert run(pipeline, "1,234", step("parse-number")) == 1234
    assert run(pipeline, "3.5", step("parse-number")) == 3.5
    assert run(pipeline, 2.5, step("round")) == 3
    assert run(pipeline, 3.14159, step("round", precision=2)) == 3.14
    assert run(pipeline, "3.7", step("floor")) == 3
    assert run(pipeline, 3.2, step("ceil")) == 4
    assert run(pipeline, -4, step("abs")) == 4


def test_regex_extract(pipeline):
    assert run(pipeline, "Order #123 shipped", step("regex-extract", pattern=r"#(\d+)")) == "123"
    assert run(pipeline, "Order #123", step("regex-extract", pattern=r"\d+")) == "123"
    assert run(pipeline, "no digits", step("regex-extract", pattern=r"\d+")) == "no digits"


def test_string_format_reads_record_fields(pipeline):
    record = {"author": {"name": "Ann"}}
    result = run(pipeline, "Post", step("string-format", template="{value} by {author.name}"), record=record)
    assert result == "Post by Ann"


def test_compute_over_record(pipeline):
    record = {"price": 2.5, "quantity": 4}
    assert run(pipeline, None, step("compute", expression="price * quantity"), record=record) == 10.0
    assert run(pipeline, 7, step("compute", expression="missing * 2"), record=record) == 7


def test_compute_rejects_runaway_results(pipeline, notifier):
    assert run(pipeline, 1, step("compute", expression="((9**999)**999)**999")) == 1
    assert run(pipeline, "x", step("compute", expression="value * 10**9")) == "x"
    assert len(notifier.by_level("warning")) == 2


def test_conditional_cases(pipeline):
    cases = [
        {"field": "status", "operator": "equals", "value": "A", "then": "Active"},
        {"field": "status", "operator": "equals", "value": "I", "then": "Inactive"},
    ]
    conditional = step("conditional", cases=cases, default="Other")
    assert run(pipeline, None, conditional, record={"status": "I"}) == "Inactive"
    assert run(pipeline, None, conditional, record={"status": "Z"}) == "Other"
    assert run(pipeline, 5, step("conditional", cases=[{"operator": "greater_than", "value": 3, "then": "big"}])) == "big"


def test_lookup_passes_unknown_values_through(pipeline):
    table = {"A": "Active", "1": "One"}
    assert run(pipeline, "A", step("lookup", table=table)) == "Active"
    assert run(pipeline, 1, step("lookup", table=table)) == "One"
    assert run(pipeline, "Z", step("lookup", table=table)) == "Z"


def test_text_kinds(pipeline):
    assert run(pipeline, "abcdef", step("substring", start=1, end=3)) == "bc"
    assert run(pipeline, "a-b-c", step("replace", find="-", replace="_")) == "a_b-c"
    assert run(pipeline, "a-b-c", step("replace", find="-", replace="_", replaceAll=True)) == "a_b_c"
    assert run(pipeline, "a,b", step("split")) == ["a", "b"]
    assert run(pipeline, ["a", "b"], step("join", delimiter="|")) == "a|b"
    assert run(pipeline, True, step("to-string")) == "true"
    assert run(pipeline, 5, step("to-string")) == "5"


def test_array_kinds(pipeline):
    values = [3, 1, 2, 3]
    assert run(pipeline, values, step("first")) == 3
    assert run(pipeline, values, step("last")) == 3
    assert run(pipeline, values, step("count")) == 4
    assert run(pipeline, values, step("sum")) == 9
    assert run(pipeline, values, step("average")) == 2.25
    assert run(pipeline, values, step("min")) == 1
    assert run(pipeline, values, step("max")) == 3
    assert run(pipeline, values, step("unique")) == [3, 1, 2]
    assert run(pipeline, "abc", step("length")) == 3
    assert run(pipeline, [], step("is-empty")) is True
    assert run(pipeline, "hello world", step("contains", text="world")) is True


def test_register_custom_kind(pipeline):
    pipeline.register("reverse", lambda value, config, context: value[::-1])
    assert "reverse" in pipeline.kinds()
    assert run(pipeline, "abc", step("reverse")) == "cba"


def test_register_on_default_pipeline():
    register_transformation("shout", lambda value, config, context: f"{value}!")
    assert default_pipeline().apply("hi", [step("shout")]) == "hi!"
