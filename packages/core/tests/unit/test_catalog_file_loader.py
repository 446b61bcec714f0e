"""Tests for catalog seed file loader."""

import json
from pathlib import Path

import pytest
import yaml

from statetransitions.infrastructure.config.file_loader import (
    CatalogFileLoader,
    ConfigurationError,
)

SEED = {
    "transitions": [
        {
            "model_type": "payment",
            "from_state": "pending",
            "to_state": "approved",
            "grants": {"users": [42], "roles": ["manager"]},
        },
        {"model_type": "payment", "from_state": "pending", "to_state": "rejected"},
    ]
}


def write_seed(tmp_path: Path, data: object, name: str = "catalog.yaml") -> Path:
    path = tmp_path / name
    if name.endswith(".json"):
        path.write_text(json.dumps(data), encoding="utf-8")
    else:
        path.write_text(yaml.dump(data), encoding="utf-8")
    return path


class TestCatalogFileLoaderInit:
    """Tests for locating the seed file."""

    def test_init_with_path(self, tmp_path: Path) -> None:
        """Test initialization with explicit file path."""
        path = write_seed(tmp_path, SEED)

        assert CatalogFileLoader(str(path)).path == path

    def test_init_with_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the environment variable is used when no path is given."""
        path = write_seed(tmp_path, SEED)
        monkeypatch.setenv("STATETRANSITIONS_CATALOG_FILE", str(path))

        assert CatalogFileLoader().path == path

    def test_init_no_path_no_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("STATETRANSITIONS_CATALOG_FILE", raising=False)

        with pytest.raises(ConfigurationError, match="Catalog file path not provided"):
            CatalogFileLoader()

    def test_init_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Catalog file not found"):
            CatalogFileLoader(tmp_path / "missing.yaml")


class TestCatalogFileLoaderLoad:
    """Tests for load()."""

    @pytest.mark.parametrize("name", ["catalog.yaml", "catalog.yml", "catalog.json"])
    def test_load_supported_formats(self, tmp_path: Path, name: str) -> None:
        path = write_seed(tmp_path, SEED, name)

        assert CatalogFileLoader(path).load() == SEED

    def test_empty_yaml_loads_as_empty_dict(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text("", encoding="utf-8")

        assert CatalogFileLoader(path).load() == {}

    def test_unsupported_format(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.toml"
        path.write_text("transitions = []", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Unsupported catalog file format"):
            CatalogFileLoader(path).load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text("transitions: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid YAML format"):
            CatalogFileLoader(path).load()

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid JSON format"):
            CatalogFileLoader(path).load()

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        path = write_seed(tmp_path, ["payment"])

        with pytest.raises(ConfigurationError, match="must contain a dictionary"):
            CatalogFileLoader(path).load()


class TestCatalogFileLoaderParse:
    """Tests for parse_transitions() and validate_structure()."""

    @pytest.fixture
    def loader(self, tmp_path: Path) -> CatalogFileLoader:
        return CatalogFileLoader(write_seed(tmp_path, SEED))

    def test_parse_normalises_entries(self, loader: CatalogFileLoader) -> None:
        parsed = loader.parse_transitions(SEED)

        assert parsed == [
            {
                "model_type": "payment",
                "from_state": "pending",
                "to_state": "approved",
                "grants": {"users": ["42"], "roles": ["manager"]},
            },
            {
                "model_type": "payment",
                "from_state": "pending",
                "to_state": "rejected",
                "grants": {"users": [], "roles": []},
            },
        ]

    def test_missing_field_reports_path(self, loader: CatalogFileLoader) -> None:
        config = {"transitions": [{"model_type": "payment", "from_state": "pending"}]}

        with pytest.raises(ConfigurationError) as exc_info:
            loader.parse_transitions(config)

        assert exc_info.value.field == "transitions[0].to_state"
        assert "transitions[0].to_state" in str(exc_info.value)

    def test_blank_token_rejected(self, loader: CatalogFileLoader) -> None:
        config = {
            "transitions": [{"model_type": "payment", "from_state": " ", "to_state": "approved"}]
        }

        with pytest.raises(ConfigurationError) as exc_info:
            loader.parse_transitions(config)

        assert exc_info.value.field == "transitions[0].from_state"

    def test_transitions_must_be_list(self, loader: CatalogFileLoader) -> None:
        with pytest.raises(ConfigurationError, match="must be a list"):
            loader.parse_transitions({"transitions": {"model_type": "payment"}})

    def test_unknown_grant_key(self, loader: CatalogFileLoader) -> None:
        config = {
            "transitions": [
                {
                    "model_type": "payment",
                    "from_state": "pending",
                    "to_state": "approved",
                    "grants": {"groups": ["ops"]},
                }
            ]
        }

        with pytest.raises(ConfigurationError, match="Unknown grant keys: groups"):
            loader.parse_transitions(config)

    @pytest.mark.parametrize("bad_id", [True, 1.5, "  ", None])
    def test_invalid_principal_ids(self, loader: CatalogFileLoader, bad_id: object) -> None:
        config = {
            "transitions": [
                {
                    "model_type": "payment",
                    "from_state": "pending",
                    "to_state": "approved",
                    "grants": {"roles": ["manager", bad_id]},
                }
            ]
        }

        with pytest.raises(ConfigurationError) as exc_info:
            loader.parse_transitions(config)

        assert exc_info.value.field == "transitions[0].grants.roles[1]"

    def test_validate_structure_rejects_unknown_keys(self, loader: CatalogFileLoader) -> None:
        with pytest.raises(ConfigurationError, match="Unknown configuration key: 'keys'"):
            loader.validate_structure({"transitions": [], "keys": []})

    def test_validate_structure_accepts_seed(self, loader: CatalogFileLoader) -> None:
        loader.validate_structure(SEED)
        loader.validate_structure({})
