import pytest

from wikibib.core.dates import (
    DateValue,
    compose_date,
    is_valid_date_text,
    month_from_text,
    parse_date,
)


@pytest.mark.parametrize(
    ("text", "parts"),
    [
        ("2020", ((2020,),)),
        ("2020-05", ((2020, 5),)),
        ("2020-05-12", ((2020, 5, 12),)),
        ("May 2020", ((2020, 5),)),
        ("12 May 2020", ((2020, 5, 12),)),
        ("May 12, 2020", ((2020, 5, 12),)),
        ("2019/2020", ((2019,), (2020,))),
        ("2019-03 -- 2020", ((2019, 3), (2020,))),
    ],
)
def test_parse_date_accepts_common_forms(text: str, parts: tuple) -> None:
    value = parse_date(text)

    assert value is not None
    assert value.parts == parts


@pytest.mark.parametrize("text", ["not a date", "2020-13", "2021-02-29", "2019/2020/2021", "12 2020"])
def test_parse_date_rejects_garbage(text: str) -> None:
    assert parse_date(text) is None


def test_parse_date_ignores_blank_input() -> None:
    assert parse_date(None) is None
    assert parse_date("   ") is None


def test_leap_day_is_valid() -> None:
    value = parse_date("2020-02-29")

    assert value is not None
    assert value.to_string() == "2020-02-29"


def test_range_rendering_and_bounds() -> None:
    value = parse_date("2019/2020-06")

    assert value is not None
    assert value.is_range
    assert value.start == (2019,)
    assert value.end == (2020, 6)
    assert str(value) == "2019/2020-06"


def test_csl_form() -> None:
    value = DateValue(((2020, 5),))

    assert value.to_csl() == {"date-parts": [[2020, 5]]}
    assert DateValue.from_csl({"date-parts": [[2020, 5]]}) == value
    assert DateValue.from_csl({"literal": "2001"}) == DateValue(((2001,),))
    assert DateValue.from_csl({"date-parts": [["x"]]}) is None


@pytest.mark.parametrize("raw", [[2020, 13], [2020, 0], [2021, 2, 29], [2020, 4, 31]])
def test_csl_form_rejects_out_of_range_parts(raw: list[int]) -> None:
    assert DateValue.from_csl({"date-parts": [raw]}) is None
    assert DateValue.from_csl({"date-parts": [[2019], raw]}) is None


def test_date_value_rejects_invalid_parts() -> None:
    with pytest.raises(ValueError):
        DateValue(())
    with pytest.raises(ValueError):
        DateValue(((2020, 1, 1, 1),))


def test_month_from_text() -> None:
    assert month_from_text("Sept") == 9
    assert month_from_text("{Dec}") == 12
    assert month_from_text("3") == 3
    assert month_from_text(13) is None
    assert month_from_text("Smarch") is None


def test_compose_date_from_separate_fields() -> None:
    assert compose_date("2020", "mar") == DateValue(((2020, 3),))
    assert compose_date("2020", "3", "14") == DateValue(((2020, 3, 14),))
    assert compose_date("2019/2020") == DateValue(((2019,), (2020,)))
    assert compose_date("2020", "foo") is None
    assert compose_date("MMXX") is None
    assert compose_date(None) is None


def test_is_valid_date_text() -> None:
    assert is_valid_date_text(None)
    assert is_valid_date_text("")
    assert is_valid_date_text("2020-01")
    assert not is_valid_date_text("garbage")
