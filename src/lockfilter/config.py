"""TOML configuration loading for filter policies."""

from __future__ import annotations

import tomllib
from datetime import date, datetime, time
from importlib import resources
from pathlib import Path
from typing import Any, TypeAlias, cast

from lockfilter.errors import ConfigError, ValidationError
from lockfilter.matcher import ExclusionRuleSet
from lockfilter.policy import FetchArtifact, FilterPolicy, Strategy, VendorAction
from lockfilter.stubs.features import FeatureTable
from lockfilter.stubs.synthesize import StubMode

DEFAULT_CONFIG_NAME = "lockfilter.toml"
DEFAULT_PRESET = "windows"
SECTION = "lockfilter"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

KNOWN_KEYS = frozenset(
    {
        "strategy",
        "stub_mode",
        "preset",
        "exclude",
        "features",
        "stub_store",
        "fetch_artifact",
        "vendor_depth",
        "vendor_action",
        "synthesize_on_lock",
    },
)
STUB_MODES = ("minimal", "feature-complete")
FETCH_ARTIFACTS = ("directory", "crate")
VENDOR_ACTIONS = ("delete", "stub")


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except UnicodeDecodeError as exc:
        raise ConfigError(
            "Config file is not valid UTF-8.",
            hint=str(exc),
            context={"path": str(config_path)},
        ) from exc
    return _parse_toml(raw, origin=str(config_path))


def load_preset(name: str) -> TomlTable:
    resource = resources.files("lockfilter").joinpath("presets", f"{name}.toml")
    if not resource.is_file():
        raise ConfigError(
            f"Unknown rule preset: {name}",
            hint="Bundled presets live in lockfilter/presets/.",
            context={"preset": name},
        )
    data = _parse_toml(resource.read_text(encoding="utf-8"), origin=f"preset:{name}")
    return _section(data, origin=f"preset:{name}")


def load_policy(config_path: Path | None = None, *, root: Path | None = None) -> FilterPolicy:
    data = load_config(root=root, config_path=config_path)
    if config_path is not None:
        base_dir = config_path.parent
    else:
        base_dir = root if root is not None else Path.cwd()
    section = _section(data, origin=str(config_path or DEFAULT_CONFIG_NAME))
    return policy_from_table(section, base_dir=base_dir)


def policy_from_table(section: TomlTable, *, base_dir: Path) -> FilterPolicy:
    unknown = sorted(set(section) - KNOWN_KEYS)
    if unknown:
        raise ConfigError(
            "Unknown keys in [lockfilter] config table.",
            context={"keys": ", ".join(unknown)},
        )

    preset_name = section.get("preset", DEFAULT_PRESET if "exclude" not in section else None)
    preset: TomlTable = {}
    if preset_name:
        if not isinstance(preset_name, str):
            raise ConfigError("Config `preset` must be a string.")
        preset = load_preset(preset_name)

    rule_specs = [*_string_list(preset, "exclude"), *_string_list(section, "exclude")]
    try:
        rules = ExclusionRuleSet.from_specs(rule_specs)
    except ValidationError as exc:
        raise ConfigError(
            "Invalid exclusion rule in config.",
            hint=exc.hint,
            context=exc.context,
        ) from exc

    features = _feature_table(preset).merged(_feature_table(section))

    strategy_raw = _choice(section, "strategy", tuple(item.value for item in Strategy), "lock")
    stub_store_raw = section.get("stub_store", "build/lockfilter-stubs")
    if not isinstance(stub_store_raw, str) or not stub_store_raw:
        raise ConfigError("Config `stub_store` must be a non-empty path string.")
    stub_store = Path(stub_store_raw)
    if not stub_store.is_absolute():
        stub_store = base_dir / stub_store

    vendor_depth = section.get("vendor_depth", 2)
    if not isinstance(vendor_depth, int) or isinstance(vendor_depth, bool) or vendor_depth < 1:
        raise ConfigError("Config `vendor_depth` must be a positive integer.")
    synthesize_on_lock = section.get("synthesize_on_lock", False)
    if not isinstance(synthesize_on_lock, bool):
        raise ConfigError("Config `synthesize_on_lock` must be a boolean.")

    return FilterPolicy(
        strategy=Strategy(strategy_raw),
        rules=rules,
        stub_mode=cast(StubMode, _choice(section, "stub_mode", STUB_MODES, "minimal")),
        feature_table=features,
        stub_store=stub_store,
        fetch_artifact=cast(
            FetchArtifact,
            _choice(section, "fetch_artifact", FETCH_ARTIFACTS, "directory"),
        ),
        vendor_depth=vendor_depth,
        vendor_action=cast(
            VendorAction,
            _choice(section, "vendor_action", VENDOR_ACTIONS, "delete"),
        ),
        synthesize_on_lock=synthesize_on_lock,
    )


def _parse_toml(raw: str, *, origin: str) -> TomlTable:
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            "Config file is not valid TOML.",
            hint=str(exc),
            context={"path": origin},
        ) from exc
    return data


def _section(data: TomlTable, *, origin: str) -> TomlTable:
    section = data.get(SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(
            "Config `[lockfilter]` must be a table.",
            context={"path": origin},
        )
    return section


def _string_list(table: TomlTable, key: str) -> list[str]:
    value = table.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"Config `{key}` must be a list of strings.")
    return list(value)


def _feature_table(table: TomlTable) -> FeatureTable:
    value = table.get("features", {})
    if not isinstance(value, dict):
        raise ConfigError("Config `features` must be a table of feature lists.")
    try:
        return FeatureTable.from_mapping(value)
    except ValidationError as exc:
        raise ConfigError(
            "Invalid feature family pattern in config.",
            hint=exc.hint,
            context=exc.context,
        ) from exc


def _choice(table: TomlTable, key: str, allowed: tuple[str, ...], default: str) -> str:
    value: Any = table.get(key, default)
    if value not in allowed:
        raise ConfigError(
            f"Unsupported value for config `{key}`.",
            hint=f"Expected one of: {', '.join(allowed)}.",
            context={"key": key, "value": str(value)},
        )
    return str(value)
