import dataclasses

import pytest

from config import MULTIPLEXED_RW_ENV
from core.matrix import (
    APPLY_HAS_NO_BEGIN_OPTION,
    VARIANT_REGISTRY,
    BeginStrategy,
    DeleteMethod,
    InsertMethod,
    ScenarioPoint,
    SessionMode,
    get_variant,
)


@pytest.mark.parametrize("name, candidates, points", [
    ("insert-delete", 24, 24),
    ("delete-begin", 36, 34),
    ("mixed-write", 9, 9),
])
def test_variant_sizes(name, candidates, points):
    variant = get_variant(name)
    assert variant.candidate_count() == candidates
    assert len(list(variant.points())) == points


def test_points_are_unique_per_variant():
    for variant in VARIANT_REGISTRY.values():
        points = list(variant.points())
        assert len(set(points)) == len(points)


def test_enumeration_order_outer_axis_slowest():
    points = list(get_variant("delete-begin").points())

    assert points[0] == ScenarioPoint(
        session_mode=SessionMode.ENABLED,
        delete_method=DeleteMethod.STATEMENT_MUTATION,
        begin_strategy=BeginStrategy.DEFAULT,
    )
    assert points[1].begin_strategy is BeginStrategy.INLINED
    assert points[2].begin_strategy is BeginStrategy.EXPLICIT
    assert points[3].delete_method is DeleteMethod.READ_WRITE_MUTATION
    # apply contributes a single point per session mode
    assert points[6].delete_method is DeleteMethod.APPLY
    assert points[7].delete_method is DeleteMethod.STATEMENT_DML
    assert [p.session_mode for p in points[:10]] == [SessionMode.ENABLED] * 10
    assert points[10].session_mode is SessionMode.DISABLED
    assert points[-1].session_mode is SessionMode.UNSET


def test_enumeration_is_deterministic():
    variant = get_variant("insert-delete")
    assert list(variant.points()) == list(variant.points())


def test_apply_only_runs_with_default_begin():
    points = list(get_variant("delete-begin").points())
    apply_points = [p for p in points if p.delete_method is DeleteMethod.APPLY]

    assert len(apply_points) == 3
    assert {p.begin_strategy for p in apply_points} == {BeginStrategy.DEFAULT}
    assert not any(APPLY_HAS_NO_BEGIN_OPTION.excludes(p) for p in points)


def test_fixed_values_fill_inactive_axes():
    for point in get_variant("insert-delete").points():
        assert point.begin_strategy is BeginStrategy.DEFAULT
    for point in get_variant("mixed-write").points():
        assert point.insert_method is InsertMethod.READ_WRITE
        assert point.delete_method is DeleteMethod.STATEMENT_MIXED


def test_only_mixed_write_is_unverified():
    unverified = [v.name for v in VARIANT_REGISTRY.values() if not v.verified]
    assert unverified == ["mixed-write"]


def test_core_delete_axis_excludes_mixed():
    for name in ("insert-delete", "delete-begin"):
        methods = {p.delete_method for p in get_variant(name).points()}
        assert DeleteMethod.STATEMENT_MIXED not in methods


def test_points_are_immutable():
    point = ScenarioPoint()
    with pytest.raises(dataclasses.FrozenInstanceError):
        point.session_mode = SessionMode.ENABLED


def test_get_variant_unknown():
    with pytest.raises(ValueError, match="unknown variant 'bogus'"):
        get_variant("bogus")


def test_parse_axis_values():
    assert DeleteMethod.parse("stmt-dml") is DeleteMethod.STATEMENT_DML
    assert BeginStrategy.parse("explicit") is BeginStrategy.EXPLICIT
    with pytest.raises(ValueError, match="unknown InsertMethod"):
        InsertMethod.parse("bulk")


def test_session_mode_env_mapping():
    assert SessionMode.ENABLED.env_value == "true"
    assert SessionMode.DISABLED.env_value == "false"
    assert SessionMode.UNSET.env_value is None

    assert SessionMode.from_env({}) is SessionMode.UNSET
    assert SessionMode.from_env({MULTIPLEXED_RW_ENV: "true"}) is SessionMode.ENABLED
    assert SessionMode.from_env({MULTIPLEXED_RW_ENV: "TRUE"}) is SessionMode.ENABLED
    assert SessionMode.from_env({MULTIPLEXED_RW_ENV: "false"}) is SessionMode.DISABLED


@pytest.mark.parametrize("value", ["yes", "1", "", "flase"])
def test_session_mode_rejects_unrecognized_env_values(value):
    with pytest.raises(ValueError, match=f"unrecognized {MULTIPLEXED_RW_ENV} value '{value}'"):
        SessionMode.from_env({MULTIPLEXED_RW_ENV: value})


def test_runner_args_and_label():
    point = ScenarioPoint(
        session_mode=SessionMode.ENABLED,
        insert_method=InsertMethod.STATEMENT,
        delete_method=DeleteMethod.APPLY,
    )
    assert point.runner_args() == [
        "--insert", "stmt", "--delete", "apply", "--begin", "default",
    ]
    variant = get_variant("delete-begin")
    assert point.label(variant.axes) == "RW=enabled delete=apply begin=default"
