# tests/dataloader/test_config_loader.py

from pathlib import Path

import pytest
import yaml

from osss.dataloader.config_loader import ConfigLoader
from osss.errors import ConfigError
from osss.schemas.models import Config


@pytest.fixture()
def tmp_yaml(tmp_path: Path) -> Path:
    """Writes a temporary YAML with valid Config fields."""
    path = tmp_path / "config.yaml"
    cfg = {
        "default_duration_minutes": 60,
        "timezone": "Europe/Berlin",
        "score_tolerance": 0.01,
        "workers": 2,
        "io_policy": {"write_metrics": True},
    }
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f)
    return path


def test_load_valid_yaml_returns_config(tmp_yaml: Path):
    """
    @brief
    Verify that valid YAML is correctly parsed and validated.

    @details
    Ensures that a well-formed YAML configuration file produces a fully
    validated `Config` object and that unspecified fields keep their defaults
    (strict_missing_rules, fix_scores, io_policy.write_report).
    """
    # --- Arrange ---
    loader = ConfigLoader()

    # --- Act ---
    cfg = loader.load(tmp_yaml)

    # --- Assert ---
    assert isinstance(cfg, Config)
    assert cfg.default_duration_minutes == 60
    assert cfg.timezone == "Europe/Berlin"
    assert cfg.workers == 2
    assert cfg.strict_missing_rules is False
    assert cfg.fix_scores is False
    assert cfg.io_policy.write_metrics is True
    assert cfg.io_policy.write_report is True


def test_overrides_take_precedence_and_none_is_ignored(tmp_yaml: Path):
    """
    @brief
    CLI overrides replace file values; None overrides are skipped.
    """
    # --- Arrange ---
    loader = ConfigLoader()

    # --- Act ---
    cfg = loader.load(tmp_yaml, {"workers": 4, "fix_scores": True, "timezone": None})

    # --- Assert ---
    assert cfg.workers == 4
    assert cfg.fix_scores is True
    assert cfg.timezone == "Europe/Berlin"


def test_from_mapping_uses_defaults():
    cfg = ConfigLoader().from_mapping(None)
    assert cfg.default_duration_minutes == 90
    assert cfg.score_tolerance == 1e-6
    assert cfg.validated_by == "osss-validator"


def test_missing_file_raises_configerror(tmp_path: Path):
    """
    @brief
    Missing configuration file triggers ConfigError.

    @details
    Simulates loading from a nonexistent file and checks that
    a descriptive `ConfigError` is raised with relevant message.
    """
    # --- Arrange ---
    loader = ConfigLoader()
    path = tmp_path / "no_such.yaml"

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader.load(path)

    # --- Assert ---
    assert "Configuration file not found" in str(e.value)


def test_wrong_extension_raises_configerror(tmp_path: Path):
    """
    @brief
    Invalid file extension results in ConfigError.

    @details
    Ensures that only `.yaml` or `.yml` files are accepted.
    """
    # --- Arrange ---
    path = tmp_path / "config.txt"
    path.write_text("workers: 2", encoding="utf-8")
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError):
        loader.load(path)


def test_empty_yaml_raises_configerror(tmp_path: Path):
    """
    @brief
    Empty YAML file triggers ConfigError.
    """
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader.load(path)

    # --- Assert ---
    assert "empty" in str(e.value).lower()


def test_yaml_with_extra_field_raises_configerror(tmp_yaml: Path):
    """
    @brief
    Extra field in YAML causes validation error.

    @details
    Adds an unexpected key to configuration to confirm
    schema validation rejects unknown fields.
    """
    # --- Arrange ---
    data = yaml.safe_load(tmp_yaml.read_text())
    data["extra_field"] = 42
    tmp_yaml.write_text(yaml.safe_dump(data), encoding="utf-8")
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader.load(tmp_yaml)

    # --- Assert ---
    assert "extra" in str(e.value).lower()


@pytest.mark.parametrize(
    "field,value",
    [("workers", "two"), ("workers", 0), ("default_duration_minutes", -5), ("score_tolerance", -1)],
)
def test_invalid_value_raises_configerror(tmp_yaml: Path, field, value):
    """
    @brief
    Wrong types and out-of-bounds values trigger ConfigError.
    """
    # --- Arrange ---
    data = yaml.safe_load(tmp_yaml.read_text())
    data[field] = value
    tmp_yaml.write_text(yaml.safe_dump(data), encoding="utf-8")
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader.load(tmp_yaml)

    # --- Assert ---
    assert "Invalid configuration" in str(e.value)
    assert field in str(e.value)


def test_invalid_path_type_raises_configerror(tmp_path: Path):
    """
    @brief
    Non-Path argument triggers ConfigError.
    """
    # --- Arrange ---
    loader = ConfigLoader()
    wrong_type = str(tmp_path / "config.yaml")

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader._read_yaml(wrong_type)

    # --- Assert ---
    msg = str(e.value)
    assert "Invalid path type" in msg
    assert "pathlib.Path" in msg


def test_yaml_parsing_error_raises_configerror(tmp_path: Path):
    """
    @brief
    Corrupted YAML triggers ConfigError.
    """
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("workers: '2\ntimezone: UTC", encoding="utf-8")
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader._read_yaml(path)

    # --- Assert ---
    msg = str(e.value)
    assert "YAML parsing failed" in msg
    assert "Fix YAML syntax" in msg


def test_unable_to_read_file_raises_configerror(monkeypatch, tmp_path: Path):
    """
    @brief
    Simulates OSError when opening file.

    @details
    Patches `Path.open` to raise `OSError` to ensure
    ConfigError is raised with diagnostic message.
    """
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("workers: 2", encoding="utf-8")

    def fake_open(*args, **kwargs):
        raise OSError("Permission denied")

    monkeypatch.setattr(Path, "open", fake_open)
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader._read_yaml(path)

    # --- Assert ---
    msg = str(e.value)
    assert "Unable to read configuration file" in msg
    assert "Permission denied" in msg


def test_yaml_root_not_mapping_raises_configerror(tmp_path: Path):
    """
    @brief
    Non-mapping YAML root triggers ConfigError.
    """
    # --- Arrange ---
    path = tmp_path / "config.yaml"
    path.write_text("- one\n- two\n- three\n", encoding="utf-8")
    loader = ConfigLoader()

    # --- Act / Assert ---
    with pytest.raises(ConfigError) as e:
        loader._read_yaml(path)

    # --- Assert ---
    msg = str(e.value)
    assert "Configuration root must be a mapping" in msg
    assert "key: value" in msg
