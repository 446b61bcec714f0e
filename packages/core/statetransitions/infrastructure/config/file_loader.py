"""Catalog seed file loader for YAML and JSON files.

A seed file lists the legal transitions per model type and the principals
allowed to execute each of them:

```yaml
transitions:
  - model_type: payment
    from_state: pending
    to_state: approved
    grants:
      users: [42]
      roles: [manager]
```
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error message.
            field: Optional field path that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.field:
            return f"Configuration error in field '{self.field}': {self.message}"
        return self.message


class CatalogFileLoader:
    """Loads a transition catalog seed from a YAML or JSON file."""

    def __init__(self, catalog_file_path: str | Path | None = None) -> None:
        """Initialize CatalogFileLoader.

        Args:
            catalog_file_path: Path to the seed file. If None, the
                STATETRANSITIONS_CATALOG_FILE environment variable is used.

        Raises:
            ConfigurationError: If no path is available or the file is missing.
        """
        if catalog_file_path is None:
            catalog_file_path = os.getenv("STATETRANSITIONS_CATALOG_FILE")
            if not catalog_file_path:
                raise ConfigurationError(
                    "Catalog file path not provided and STATETRANSITIONS_CATALOG_FILE "
                    "environment variable is not set"
                )

        self._path = Path(catalog_file_path)
        if not self._path.is_file():
            raise ConfigurationError(f"Catalog file not found: {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Load the raw seed data, picking the parser from the file extension.

        Raises:
            ConfigurationError: If the format is unsupported or the file cannot be parsed.
        """
        suffix = self._path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            return self._load_yaml()
        elif suffix == ".json":
            return self._load_json()
        else:
            raise ConfigurationError(
                f"Unsupported catalog file format: {suffix}. "
                "Supported formats: .yaml, .yml, .json"
            )

    def _load_yaml(self) -> dict[str, Any]:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read catalog file: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("YAML file must contain a dictionary/mapping")
        return data

    def _load_json(self) -> dict[str, Any]:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read catalog file: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("JSON file must contain an object")
        return data

    def parse_transitions(self, config: dict[str, Any]) -> list[dict[str, Any]]:
        """Parse and normalise the transitions section.

        Args:
            config: Seed dictionary returned by load().

        Returns:
            List of dictionaries with keys model_type, from_state, to_state and
            grants ({"users": [...], "roles": [...]}, ids as strings).

        Raises:
            ConfigurationError: If an entry is malformed.
        """
        transitions_config = config.get("transitions", [])
        if not isinstance(transitions_config, list):
            raise ConfigurationError(
                "Configuration 'transitions' must be a list", field="transitions"
            )

        parsed = []
        for idx, entry in enumerate(transitions_config):
            path = f"transitions[{idx}]"
            if not isinstance(entry, dict):
                raise ConfigurationError(
                    f"Transition at index {idx} must be a dictionary", field=path
                )

            for name in ("model_type", "from_state", "to_state"):
                if name not in entry:
                    raise ConfigurationError(
                        f"Transition at index {idx} missing required field '{name}'",
                        field=f"{path}.{name}",
                    )
                value = entry[name]
                if not isinstance(value, str) or not value.strip():
                    raise ConfigurationError(
                        f"Transition at index {idx} has invalid '{name}' (must be non-empty string)",
                        field=f"{path}.{name}",
                    )

            parsed.append({
                "model_type": entry["model_type"].strip(),
                "from_state": entry["from_state"].strip(),
                "to_state": entry["to_state"].strip(),
                "grants": self._parse_grants(entry.get("grants"), f"{path}.grants"),
            })

        return parsed

    def _parse_grants(self, grants: Any, path: str) -> dict[str, list[str]]:
        if grants is None:
            return {"users": [], "roles": []}
        if not isinstance(grants, dict):
            raise ConfigurationError("Grants must be a dictionary", field=path)

        unknown = set(grants) - {"users", "roles"}
        if unknown:
            raise ConfigurationError(
                f"Unknown grant keys: {', '.join(sorted(unknown))}. Allowed keys: roles, users",
                field=path,
            )

        parsed: dict[str, list[str]] = {}
        for kind in ("users", "roles"):
            ids = grants.get(kind) or []
            if not isinstance(ids, list):
                raise ConfigurationError(f"'{kind}' must be a list", field=f"{path}.{kind}")
            normalised = []
            for pos, principal_id in enumerate(ids):
                # bool is an int subclass
                if isinstance(principal_id, bool) or not isinstance(principal_id, (str, int)):
                    raise ConfigurationError(
                        "Principal ids must be strings or integers",
                        field=f"{path}.{kind}[{pos}]",
                    )
                principal_id = str(principal_id).strip()
                if not principal_id:
                    raise ConfigurationError(
                        "Principal ids must not be blank", field=f"{path}.{kind}[{pos}]"
                    )
                normalised.append(principal_id)
            parsed[kind] = normalised
        return parsed

    def validate_structure(self, config: dict[str, Any]) -> None:
        """Validate the top-level structure and every transitions entry.

        Raises:
            ConfigurationError: If the structure is invalid.
        """
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        allowed_keys = {"transitions"}
        for key in config:
            if key not in allowed_keys:
                raise ConfigurationError(
                    f"Unknown configuration key: '{key}'. Allowed keys: {', '.join(sorted(allowed_keys))}",
                    field=key,
                )

        if "transitions" in config:
            self.parse_transitions(config)
