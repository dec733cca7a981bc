from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"
SCHEMA_SUFFIX = ".schema.json"


@dataclass
class SchemaRegistry:
    base_dir: Path
    schemas: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    validators: Dict[str, Draft202012Validator] = field(default_factory=dict)

    def register(self, name: str, path: Optional[Path] = None) -> None:
        path = path or self.base_dir / f"{name}{SCHEMA_SUFFIX}"
        if not path.exists():
            raise FileNotFoundError(f"Missing schema file: {path}")
        payload = json.loads(path.read_text(encoding="utf-8"))
        Draft202012Validator.check_schema(payload)
        self.schemas[name] = payload
        self.validators[name] = Draft202012Validator(payload)

    def validator(self, name: str) -> Draft202012Validator:
        if name not in self.validators:
            raise KeyError(f"Schema not registered: {name}")
        return self.validators[name]

    def check(self, name: str, payload: Any) -> List[str]:
        """Validation problems as ``"at <path>: <message>"``, ordered by location."""
        errors = sorted(
            self.validator(name).iter_errors(payload),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
        problems = []
        for error in errors:
            where = "/".join(str(p) for p in error.absolute_path) or "<root>"
            problems.append(f"at {where}: {error.message}")
        return problems


def load_default_registry() -> SchemaRegistry:
    registry = SchemaRegistry(SCHEMA_DIR)
    registry.register("graph_data")
    return registry


DEFAULT_REGISTRY = load_default_registry()
