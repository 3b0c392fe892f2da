"""Profile loading and validation for YAML-based netcfgctl device profiles."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from netcfgctl.core.errors import ProfileLoadError, ProfileValidationError
from netcfgctl.core.model import (
    CommandSet,
    DeviceProfile,
    FramingSpec,
    GattSpec,
    Limits,
    MatchRules,
    Timeouts,
)

_HEX_RE = re.compile(r"^[0-9a-f]+$")
_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"
_MIN_CONNECT_TIMEOUT_S = 5.0
DEFAULT_PROFILE_ID = "netcfg_ble"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, DeviceProfile]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("netcfgctl.schemas").joinpath("profile.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _user_profile_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "netcfgctl" / "profiles"


def _is_profile_file(name: str) -> bool:
    return name.endswith((".yml", ".yaml"))


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return loaded


def _normalize_hex(value: str, *, context: str) -> bytes:
    normalized = value.strip().lower().replace(" ", "")
    if len(normalized) == 0:
        raise ProfileValidationError(f"{context} must not be empty")
    if len(normalized) % 2 != 0:
        raise ProfileValidationError(f"{context} must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise ProfileValidationError(f"{context} must contain only [0-9a-f]")
    return bytes.fromhex(normalized)


def _normalize_uint16(value: str, *, context: str) -> int:
    payload = _normalize_hex(value, context=context)
    if len(payload) != 2:
        raise ProfileValidationError(f"{context} must be exactly 2 bytes of hex")
    return int.from_bytes(payload, "big")


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ProfileValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    if len(normalized) == 4:
        normalized = f"0000{normalized}"
    if len(normalized) == 8:
        normalized = f"{normalized}{_BASE_UUID_SUFFIX}"
    return normalized


def _build_profile(doc: dict[str, Any], source: Path | Traversable, validator: Any) -> DeviceProfile:
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    profile_id = doc["id"]
    gatt_doc = doc["gatt"]
    gatt = GattSpec(
        service_uuid=_normalize_uuid(gatt_doc["service_uuid"], context=f"{profile_id}.gatt.service_uuid"),
        write_char_uuid=_normalize_uuid(
            gatt_doc["write_char_uuid"], context=f"{profile_id}.gatt.write_char_uuid"
        ),
        status_char_uuid=_normalize_uuid(
            gatt_doc["status_char_uuid"], context=f"{profile_id}.gatt.status_char_uuid"
        ),
    )

    match = MatchRules(
        name_contains=tuple(doc["match"].get("name_contains", [])),
        data_markers=tuple(
            _normalize_hex(marker, context=f"{profile_id}.match.data_markers")
            for marker in doc["match"].get("data_markers", [])
        ),
    )

    commands = CommandSet(
        **{
            name: _normalize_uint16(value, context=f"{profile_id}.commands.{name}")
            for name, value in doc.get("commands", {}).items()
        }
    )

    framing_doc = dict(doc.get("framing", {}))
    if "prefix_id" in framing_doc:
        framing_doc["prefix_id"] = _normalize_uint16(
            framing_doc["prefix_id"], context=f"{profile_id}.framing.prefix_id"
        )
    framing = FramingSpec(**framing_doc)

    timeouts = Timeouts(**{key: float(value) for key, value in doc.get("timeouts", {}).items()})
    if timeouts.connect_s < _MIN_CONNECT_TIMEOUT_S:
        raise ProfileValidationError(
            f"{profile_id}.timeouts.connect_s must be at least {_MIN_CONNECT_TIMEOUT_S} seconds"
        )

    return DeviceProfile(
        id=profile_id,
        name=doc["name"],
        match=match,
        gatt=gatt,
        commands=commands,
        framing=framing,
        limits=Limits(**doc.get("limits", {})),
        timeouts=timeouts,
    )


def load_profiles() -> LoadedProfiles:
    """Load packaged profiles, then user profiles, which replace packaged ones by id."""
    validator = _load_schema_validator()
    packaged = sorted(
        (item for item in resources.files("netcfgctl.profiles").iterdir() if _is_profile_file(item.name)),
        key=lambda item: item.name,
    )
    user_dir = _user_profile_dir()
    user = sorted(p for p in user_dir.iterdir() if _is_profile_file(p.name)) if user_dir.is_dir() else []

    profiles: dict[str, DeviceProfile] = {}
    warnings: list[str] = []
    for path in packaged:
        profile = _build_profile(_read_yaml(path), path, validator)
        profiles[profile.id] = profile

    for path in user:
        profile = _build_profile(_read_yaml(path), path, validator)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
