from __future__ import annotations

from typing import Any, Generic, List, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class SchemaError(ValueError):
    def __init__(self, violations: List[str]):
        super().__init__("; ".join(violations) or "schema validation failed")
        self.violations = list(violations)


class OutputSchema(Protocol[T]):
    name: str

    def validate(self, data: Any) -> T:
        ...


class PydanticSchema(Generic[M]):
    """Adapts a pydantic model to the ``OutputSchema`` contract."""

    def __init__(self, model: Type[M]):
        self.model = model
        self.name = model.__name__

    def validate(self, data: Any) -> M:
        try:
            return self.model.model_validate(data)
        except ValidationError as exc:
            raise SchemaError(format_violations(exc)) from exc

    def dump(self, value: M) -> Any:
        return value.model_dump(mode="json", by_alias=True)

    def __repr__(self) -> str:
        return f"PydanticSchema({self.name})"


def format_violations(exc: ValidationError) -> List[str]:
    violations: List[str] = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        violations.append(f"{path or '<root>'}: {error.get('msg', 'invalid value')}")
    return violations


def as_schema(schema: Union[OutputSchema[Any], Type[BaseModel]]) -> OutputSchema[Any]:
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return PydanticSchema(schema)
    return schema
