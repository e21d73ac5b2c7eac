"""
Directive unit definition.

A directive unit is the atomic selectable thing: an agent persona, a skill,
a rule, or a workflow step. Units are declared in markdown frontmatter or
YAML files and parsed into immutable DirectiveUnit models.
"""

from __future__ import annotations

import enum as _enum
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

UnitKind = _typing.Literal["agent", "skill", "rule", "workflow-step"]
"""The four kinds of directive unit."""

UNIT_KINDS: tuple[str, ...] = _typing.get_args(UnitKind)

UnitStatus = _typing.Literal["active", "deprecated"]

# Same shape as skill names: lowercase, digits, inner hyphens
UNIT_ID_PATTERN = r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$"

# Extra frontmatter keys kept without complaint (skill file conventions)
PASSTHROUGH_FIELDS = frozenset({"name", "license", "allowed-tools", "metadata", "version"})


class PriorityTier(_enum.IntEnum):
    """Named priority tiers. Lower tiers are sequenced first."""

    MANDATORY = 0
    TASK_TRIGGERED = 1
    TECH_TRIGGERED = 2
    ADVISORY = 3

    @property
    def label(self) -> str:
        """Tier name as written in unit files (e.g. "task-triggered")."""
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, value: _typing.Any) -> int:
        """
        Convert a tier name or integer into its ordinal.

        Integers outside the named tiers are accepted so catalogs can
        define finer-grained ordering.

        Raises:
            ValueError: If value is an unknown name or a negative number.
        """
        if isinstance(value, bool):
            raise ValueError(f"Invalid priority tier: {value!r}")
        if isinstance(value, int):
            if value < 0:
                raise ValueError(f"Priority tier must be >= 0, got {value}")
            return value
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key in cls.__members__:
                return int(cls.__members__[key])
            if key.isdigit():
                return int(key)
        raise ValueError(f"Unknown priority tier: {value!r}")


def tier_label(tier: int) -> str:
    """Return the tier name for known ordinals, else the number as text."""
    try:
        return PriorityTier(tier).label
    except ValueError:
        return str(tier)


class Triggers(_pydantic.BaseModel):
    """
    Trigger predicates for a unit.

    The predicates form a disjunction: a unit is a candidate when any one
    of them holds for the collected project signals.
    """

    model_config = _pydantic.ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )

    markers: tuple[str, ...] = ()
    """File-marker names (e.g. "has-react", "stack:laravel")."""

    keywords: tuple[str, ...] = ()
    """Task keywords. Entries containing * or ? are glob patterns."""

    modes: tuple[str, ...] = ()
    """Modes (explicit or inferred) that activate the unit."""

    always_on: bool = _pydantic.Field(
        default=False,
        validation_alias=_pydantic.AliasChoices("always-on", "alwaysOn", "always_on"),
    )
    """Include the unit unconditionally."""

    @_pydantic.field_validator("markers", "keywords", "modes", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: _typing.Any) -> _typing.Any:
        """Accept a bare string where a list is expected."""
        if isinstance(value, str):
            return (value,)
        return value

    @_pydantic.field_validator("keywords", mode="after")
    @classmethod
    def _normalize_keywords(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Keywords are matched against lowercase tokens."""
        return tuple(k.strip().lower() for k in value if k.strip())

    @property
    def is_empty(self) -> bool:
        """True when no predicate is declared."""
        return not (self.markers or self.keywords or self.modes or self.always_on)


def _as_tuple(value: _typing.Any) -> _typing.Any:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return value


class DirectiveUnit(_pydantic.BaseModel):
    """
    A single directive unit with its declared metadata.

    Units are immutable once loaded. Relations to other units are by id
    and are checked by catalog validation, not here.
    """

    model_config = _pydantic.ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )

    id: str = _pydantic.Field(
        ...,
        min_length=1,
        max_length=64,
        pattern=UNIT_ID_PATTERN,
        description="Unit id (lowercase, hyphens allowed)",
    )

    kind: UnitKind = _pydantic.Field(..., description="Unit kind")

    description: str = _pydantic.Field(
        default="",
        max_length=1024,
        description="What the unit is for",
    )

    triggers: Triggers = _pydantic.Field(default_factory=Triggers)

    priority_tier: int = _pydantic.Field(
        default=int(PriorityTier.ADVISORY),
        validation_alias=_pydantic.AliasChoices("priority-tier", "priorityTier", "priority_tier"),
        description="Sequencing tier; lower goes first",
    )

    depends_on: tuple[str, ...] = _pydantic.Field(
        default=(),
        validation_alias=_pydantic.AliasChoices("depends-on", "dependsOn", "depends_on"),
    )
    """Units that must be included whenever this one is."""

    enhances: tuple[str, ...] = ()
    """Informational relation; never expanded."""

    status: UnitStatus = "active"

    replaced_by: str | None = _pydantic.Field(
        default=None,
        validation_alias=_pydantic.AliasChoices("replaced-by", "replacedBy", "replaced_by"),
    )
    """Successor unit. Required when status is deprecated."""

    concerns: tuple[str, ...] = ()
    """Concerns this unit gives guidance on."""

    authoritative_for: tuple[str, ...] = _pydantic.Field(
        default=(),
        validation_alias=_pydantic.AliasChoices(
            "authoritative-for", "authoritativeFor", "authoritative_for"
        ),
    )
    """Concerns over which this unit overrides other included units."""

    # Load bookkeeping, not part of the declared metadata
    body: str = _pydantic.Field(default="", repr=False)
    path: _pathlib.Path | None = _pydantic.Field(default=None, repr=False)
    source: str = _pydantic.Field(default="catalog", repr=False)

    @_pydantic.field_validator("priority_tier", mode="before")
    @classmethod
    def _parse_tier(cls, value: _typing.Any) -> int:
        return PriorityTier.parse(value)

    @_pydantic.field_validator(
        "depends_on", "enhances", "concerns", "authoritative_for", mode="before"
    )
    @classmethod
    def _coerce_ids(cls, value: _typing.Any) -> _typing.Any:
        return _as_tuple(value)

    @_pydantic.field_validator("triggers", mode="before")
    @classmethod
    def _coerce_triggers(cls, value: _typing.Any) -> _typing.Any:
        return {} if value is None else value

    @property
    def is_deprecated(self) -> bool:
        return self.status == "deprecated"

    @property
    def is_always_on(self) -> bool:
        return self.triggers.always_on

    @property
    def all_concerns(self) -> frozenset[str]:
        """Concerns addressed, including those the unit is authoritative for."""
        return frozenset(self.concerns) | frozenset(self.authoritative_for)

    @property
    def tier_label(self) -> str:
        return tier_label(self.priority_tier)

    def unknown_fields(self) -> list[str]:
        """Declared keys that are neither unit fields nor passthrough keys."""
        extra = self.model_extra or {}
        return sorted(k for k in extra if k not in PASSTHROUGH_FIELDS)

    def references(self) -> _typing.Iterator[tuple[str, str]]:
        """Yield (relation, target id) for every outgoing reference."""
        for dep in self.depends_on:
            yield "depends-on", dep
        for target in self.enhances:
            yield "enhances", target
        if self.replaced_by is not None:
            yield "replaced-by", self.replaced_by

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "kind": self.kind,
            "description": self.description,
            "priority_tier": self.priority_tier,
            "tier": self.tier_label,
            "status": self.status,
            "replaced_by": self.replaced_by,
            "depends_on": list(self.depends_on),
            "enhances": list(self.enhances),
            "concerns": list(self.concerns),
            "authoritative_for": list(self.authoritative_for),
            "triggers": {
                "markers": list(self.triggers.markers),
                "keywords": list(self.triggers.keywords),
                "modes": list(self.triggers.modes),
                "always_on": self.triggers.always_on,
            },
            "path": str(self.path) if self.path else None,
            "source": self.source,
        }
