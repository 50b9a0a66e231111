import pydantic
import pytest

from sticky_notes.filters import (
    MAX_LIMIT,
    MAX_PAGE,
    Contains,
    Equals,
    HasAnyTag,
    NoteFilter,
    OnOrAfter,
    SortDirection,
    SortField,
    SortSpec,
    build_plan,
    escape_like,
)


def test_predicates_are_emitted_in_fixed_order():
    plan = build_plan(
        NoteFilter(search="idea", tags="work,home", conversation="c1", color="#A7F3D0", start_date=100)
    )
    assert [type(p) for p in plan.predicates] == [HasAnyTag, Equals, Equals, OnOrAfter, Contains]
    assert plan.params == ("work", "home", "c1", "#A7F3D0", 100, "%idea%", "%idea%")


def test_blank_inputs_produce_no_predicates():
    plan = build_plan(NoteFilter(search="   ", conversation="", color=" ", tags=" , ,"))
    assert plan.predicates == ()
    assert plan.where() is None
    assert plan.params == ()


def test_tags_accept_lists_and_comma_strings():
    assert NoteFilter(tags=[" a ", "c", "a"]).tags == ["a", "c"]
    # list items are whole names, only a bare string is split
    assert NoteFilter(tags=["a,b", "c"]).tags == ["a,b", "c"]
    assert NoteFilter(tags="x,,y").tags == ["x", "y"]
    assert NoteFilter(tags=None).tags == []


def test_start_date_accepts_camel_case_alias():
    assert NoteFilter.model_validate({"startDate": 42}).start_date == 42


def test_sort_defaults_and_fallbacks():
    assert SortSpec.parse(None) == SortSpec(SortField.UPDATED_AT, SortDirection.DESC)
    assert SortSpec.parse("title asc").sql == "title ASC"
    assert SortSpec.parse("title", "asc").sql == "title ASC"
    # each part falls back on its own
    assert SortSpec.parse("title", "sideways").sql == "title DESC"
    assert SortSpec.parse("title; DROP TABLE notes", "ASC").sql == "updated_at ASC"
    assert SortSpec.parse("bogus").sql == "updated_at DESC"


def test_sort_from_dict_in_filter():
    f = NoteFilter(sort={"field": "color_hex", "direction": "ASC"})
    assert f.sort.sql == "color_hex ASC"
    assert build_plan(f).order_sql == "color_hex ASC"


def test_offset():
    assert NoteFilter(page=3, limit=10).offset == 20
    assert NoteFilter().offset == 0


def test_search_params_show_the_escaped_pattern():
    plan = build_plan(NoteFilter(search="50%_off/x"))
    assert plan.params == ("%50/%/_off//x%", "%50/%/_off//x%")
    assert escape_like("plain") == "plain"


def test_paging_is_bounded_so_the_offset_fits_sqlite():
    with pytest.raises(pydantic.ValidationError):
        NoteFilter(page=MAX_PAGE + 1)
    with pytest.raises(pydantic.ValidationError):
        NoteFilter(limit=MAX_LIMIT + 1)
    assert NoteFilter(page=MAX_PAGE, limit=MAX_LIMIT).offset < 2**63
