from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Schema registry for the bulk upload engine.

Each entity kind (students / teachers / games) declares its primary key,
the business fields an upload may overwrite, and the engine-managed fields
(timestamps and server-owned counters) that an upload must never set on
update.

The registry is declarative only. Conversion lives in
roster_import.excel.converters; preservation rules are applied by
roster_import.services.record_builder.
"""

__all__ = [
    "EntityKind",
    "FieldType",
    "FieldSpec",
    "EntitySchema",
    "SCHEMAS",
    "TIMESTAMP_FIELDS",
    "get_schema",
]


class EntityKind(Enum):
    """Entity kinds accepted by the upload engine."""
    STUDENTS = "students"
    TEACHERS = "teachers"
    GAMES = "games"

    @classmethod
    def parse(cls, value: str | EntityKind) -> EntityKind:
        if isinstance(value, EntityKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise ValueError(
                f"unknown entity kind: {value!r} (expected one of {[k.value for k in cls]})"
            ) from e


class FieldType(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING_ARRAY = "array"
    DATE = "date"


@dataclass(frozen=True)
class FieldSpec:
    """Declarative rule for a single record field.

    Attributes:
        type: Target type the cell value is converted to
        required: Row is rejected when the cell is missing (None / "")
        description: Human readable description (docs / --inspect-data)
        server_owned: Never taken from the upload on update
        default_now: Blank cell becomes "now" on create and keeps the stored value on update
    """
    type: FieldType
    required: bool = False
    description: str = ""
    server_owned: bool = False
    default_now: bool = False


# 作成/更新タイムスタンプ (エンジン管理, アップロード値は常に無視)
TIMESTAMP_FIELDS: tuple[str, ...] = ("created_at", "updated_at", "last_update")


@dataclass(frozen=True)
class EntitySchema:
    """Complete upload schema for one entity kind."""
    kind: EntityKind
    key_field: str
    fields: dict[str, FieldSpec]
    header_aliases: dict[str, str] = field(default_factory=dict)

    @property
    def business_fields(self) -> tuple[str, ...]:
        """Fields an upload may overwrite (whitelist used by merge_for_update)."""
        return tuple(
            name for name, spec in self.fields.items()
            if name != self.key_field and not spec.server_owned
        )

    @property
    def server_owned_fields(self) -> tuple[str, ...]:
        return tuple(name for name, spec in self.fields.items() if spec.server_owned)

    @property
    def required_headers(self) -> set[str]:
        return {name for name, spec in self.fields.items() if spec.required}

    @property
    def expected_headers(self) -> set[str]:
        # last_update は旧テンプレートに含まれるため許容 (値は無視)
        return set(self.fields) | {"last_update"}

    def canonical_header(self, header: str) -> str:
        return self.header_aliases.get(header, header)


STUDENT_SCHEMA = EntitySchema(
    kind=EntityKind.STUDENTS,
    key_field="student_id",
    fields={
        "student_id": FieldSpec(FieldType.STRING, required=True, description="Unique student identifier"),
        "name_1": FieldSpec(FieldType.STRING, description="Student name (primary language)"),
        "name_2": FieldSpec(FieldType.STRING, description="Student name (secondary language)"),
        "marks": FieldSpec(FieldType.NUMBER, description="Student marks/score"),
        "class": FieldSpec(FieldType.STRING, description="Class designation (e.g. 1A, 2B)"),
        "class_no": FieldSpec(FieldType.STRING, description="Class number/position"),
        "last_login": FieldSpec(FieldType.DATE, description="Last login timestamp", default_now=True),
        "teacher_id": FieldSpec(FieldType.STRING, description="Associated teacher ID"),
        "password": FieldSpec(FieldType.STRING, description="Hashed password"),
    },
)

TEACHER_SCHEMA = EntitySchema(
    kind=EntityKind.TEACHERS,
    key_field="teacher_id",
    fields={
        "teacher_id": FieldSpec(FieldType.STRING, required=True, description="Unique teacher identifier"),
        "name": FieldSpec(FieldType.STRING, description="Teacher name"),
        "email": FieldSpec(FieldType.STRING, description="Contact email"),
        "password": FieldSpec(FieldType.STRING, description="Hashed password"),
        "responsible_class": FieldSpec(
            FieldType.STRING_ARRAY, description="Classes taught (JSON array in the sheet)"
        ),
        "is_admin": FieldSpec(FieldType.BOOLEAN, description="Admin flag (true/false/1/0/yes)"),
        "last_login": FieldSpec(FieldType.DATE, description="Last login timestamp", default_now=True),
    },
    header_aliases={"classes": "responsible_class"},
)

GAME_SCHEMA = EntitySchema(
    kind=EntityKind.GAMES,
    key_field="game_id",
    fields={
        "game_id": FieldSpec(FieldType.STRING, required=True, description="Unique game identifier"),
        "game_name": FieldSpec(FieldType.STRING, description="Display name of the game"),
        "student_id": FieldSpec(FieldType.STRING, description="ID of student who created the game"),
        "subject": FieldSpec(FieldType.STRING, description="Subject category"),
        "difficulty": FieldSpec(FieldType.STRING, description="Beginner / Intermediate / Advanced"),
        "teacher_id": FieldSpec(FieldType.STRING, description="Associated teacher ID"),
        "scratch_id": FieldSpec(FieldType.STRING, description="Scratch project ID"),
        "scratch_api": FieldSpec(FieldType.STRING, description="Scratch project URL (ends with game_id)"),
        "description": FieldSpec(FieldType.STRING, description="Free text description"),
        "accumulated_click": FieldSpec(
            FieldType.NUMBER,
            description="Total click count (owned by the click path, preserved on update)",
            server_owned=True,
        ),
    },
)

SCHEMAS: dict[EntityKind, EntitySchema] = {
    EntityKind.STUDENTS: STUDENT_SCHEMA,
    EntityKind.TEACHERS: TEACHER_SCHEMA,
    EntityKind.GAMES: GAME_SCHEMA,
}


def get_schema(kind: str | EntityKind) -> EntitySchema:
    return SCHEMAS[EntityKind.parse(kind)]
