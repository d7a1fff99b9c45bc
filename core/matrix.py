"""
Matrix Enumerator - configuration axes, scenario points and variants

Every scenario point is one value drawn from each active axis of a variant.
Inactive axes are pinned to the variant's fixed values so a point always
carries a complete configuration for the Scenario Runner.
"""

import itertools
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from config import MULTIPLEXED_RW_ENV


class AxisValue(Enum):
    """Base for axis enums; ``value`` is the command-line spelling."""

    @classmethod
    def parse(cls, text: str) -> "AxisValue":
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(
            f"unknown {cls.__name__} '{text}'; expected one of: {', '.join(m.value for m in cls)}"
        )

    @property
    def label(self) -> str:
        return self.value


class SessionMode(AxisValue):
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNSET = "unset"

    @property
    def env_value(self) -> Optional[str]:
        """Value of the multiplexing toggle for the child process, None means removed."""
        return {SessionMode.ENABLED: "true", SessionMode.DISABLED: "false"}.get(self)

    @property
    def multiplexed(self) -> Optional[bool]:
        """Session kind for caller-driven transactions, None leaves it to the client default."""
        return {SessionMode.ENABLED: True, SessionMode.DISABLED: False}.get(self)

    @classmethod
    def from_env(cls, env: Dict[str, str]) -> "SessionMode":
        value = env.get(MULTIPLEXED_RW_ENV)
        if value is None:
            return cls.UNSET
        normalized = value.strip().lower()
        if normalized == "true":
            return cls.ENABLED
        if normalized == "false":
            return cls.DISABLED
        raise ValueError(
            f"unrecognized {MULTIPLEXED_RW_ENV} value '{value}'; expected true or false"
        )


class InsertMethod(AxisValue):
    READ_WRITE = "rw"
    STATEMENT = "stmt"


class DeleteMethod(AxisValue):
    STATEMENT_MUTATION = "stmt-mutation"
    READ_WRITE_MUTATION = "rw-mutation"
    APPLY = "apply"
    STATEMENT_DML = "stmt-dml"
    # DML and mutation committed together; outcome not yet established
    STATEMENT_MIXED = "stmt-mixed"

    @property
    def accepts_begin_strategy(self) -> bool:
        return self is not DeleteMethod.APPLY


class BeginStrategy(AxisValue):
    DEFAULT = "default"
    INLINED = "inlined"
    EXPLICIT = "explicit"


CORE_DELETE_METHODS = (
    DeleteMethod.STATEMENT_MUTATION,
    DeleteMethod.READ_WRITE_MUTATION,
    DeleteMethod.APPLY,
    DeleteMethod.STATEMENT_DML,
)


@dataclass(frozen=True)
class Axis:
    """A named, ordered, closed set of mutually exclusive values."""
    name: str
    field_name: str
    header: str
    values: Tuple[AxisValue, ...]

    def __len__(self) -> int:
        return len(self.values)


SESSION_MODE_AXIS = Axis("session-mode", "session_mode", "RW env", tuple(SessionMode))
INSERT_METHOD_AXIS = Axis("insert", "insert_method", "INSERT", tuple(InsertMethod))
DELETE_METHOD_AXIS = Axis("delete", "delete_method", "DELETE", CORE_DELETE_METHODS)
BEGIN_STRATEGY_AXIS = Axis("begin", "begin_strategy", "BEGIN", tuple(BeginStrategy))


@dataclass(frozen=True)
class ScenarioPoint:
    session_mode: SessionMode = SessionMode.UNSET
    insert_method: InsertMethod = InsertMethod.READ_WRITE
    delete_method: DeleteMethod = DeleteMethod.STATEMENT_MUTATION
    begin_strategy: BeginStrategy = BeginStrategy.DEFAULT

    def value_of(self, axis: Axis) -> AxisValue:
        return getattr(self, axis.field_name)

    def label(self, axes: Sequence[Axis] = ()) -> str:
        """Human readable label, e.g. ``RW=enabled delete=apply``."""
        axes = axes or (SESSION_MODE_AXIS, INSERT_METHOD_AXIS, DELETE_METHOD_AXIS, BEGIN_STRATEGY_AXIS)
        parts = []
        for axis in axes:
            name = "RW" if axis is SESSION_MODE_AXIS else axis.name
            parts.append(f"{name}={self.value_of(axis).label}")
        return " ".join(parts)

    def as_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name).value for f in fields(self)}

    def runner_args(self) -> List[str]:
        """Per-transaction choices passed to the Scenario Runner as flags."""
        return [
            "--insert", self.insert_method.value,
            "--delete", self.delete_method.value,
            "--begin", self.begin_strategy.value,
        ]


@dataclass(frozen=True)
class Exclusion:
    """Named predicate; candidate points for which it holds are skipped."""
    name: str
    predicate: Callable[[ScenarioPoint], bool]

    def excludes(self, point: ScenarioPoint) -> bool:
        return self.predicate(point)


APPLY_HAS_NO_BEGIN_OPTION = Exclusion(
    "apply-has-no-begin-option",
    lambda p: (not p.delete_method.accepts_begin_strategy
               and p.begin_strategy is not BeginStrategy.DEFAULT),
)


@dataclass(frozen=True)
class MatrixVariant:
    name: str
    description: str
    axes: Tuple[Axis, ...]
    fixed: Dict[str, AxisValue] = field(default_factory=dict)
    exclusions: Tuple[Exclusion, ...] = ()
    verified: bool = True

    def candidate_count(self) -> int:
        count = 1
        for axis in self.axes:
            count *= len(axis)
        return count

    def points(self) -> Iterator[ScenarioPoint]:
        """Yield the cartesian product of the axes, outermost axis slowest."""
        base = ScenarioPoint(**self.fixed)
        for combo in itertools.product(*(axis.values for axis in self.axes)):
            values = {axis.field_name: value for axis, value in zip(self.axes, combo)}
            point = replace(base, **values)
            if any(rule.excludes(point) for rule in self.exclusions):
                continue
            yield point


VARIANT_REGISTRY: Dict[str, MatrixVariant] = {
    "insert-delete": MatrixVariant(
        name="insert-delete",
        description="session mode x insert method x delete method",
        axes=(SESSION_MODE_AXIS, INSERT_METHOD_AXIS, DELETE_METHOD_AXIS),
        fixed={"begin_strategy": BeginStrategy.DEFAULT},
    ),
    "delete-begin": MatrixVariant(
        name="delete-begin",
        description="session mode x delete method x begin strategy",
        axes=(SESSION_MODE_AXIS, DELETE_METHOD_AXIS, BEGIN_STRATEGY_AXIS),
        fixed={"insert_method": InsertMethod.READ_WRITE},
        exclusions=(APPLY_HAS_NO_BEGIN_OPTION,),
    ),
    "mixed-write": MatrixVariant(
        name="mixed-write",
        description="DML and delete mutation in one statement-based transaction",
        axes=(SESSION_MODE_AXIS, BEGIN_STRATEGY_AXIS),
        fixed={
            "insert_method": InsertMethod.READ_WRITE,
            "delete_method": DeleteMethod.STATEMENT_MIXED,
        },
        verified=False,
    ),
}


def get_variant(name: str) -> MatrixVariant:
    try:
        return VARIANT_REGISTRY[name]
    except KeyError:
        raise ValueError(
            f"unknown variant '{name}'; expected one of: {', '.join(VARIANT_REGISTRY)}"
        ) from None
