import os
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, SecretStr
from pydantic_settings import BaseSettings

# Union alias used across the package for configuration overrides
SettingsLike = Union[
    Dict[str, Any],
    List[Union[Dict[str, Any], BaseSettings, BaseModel]],
    BaseSettings,
    BaseModel,
    None,
]

MASK = "********"


class _AttrView:
    """
    Lightweight attribute-access wrapper around a mapping.

    Enables access like obj.SECTION.KEY for nested dictionaries.
    """

    def __init__(self, data: Dict[str, Any]):
        self._data = data

    def __getattr__(self, name: str):
        if name in self._data:
            return _wrap(self._data[name])
        raise AttributeError(f"No such attribute: {name}")

    def __getitem__(self, key: str):
        return _wrap(self._data[key])

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"_AttrView({self._data!r})"


def _wrap(value: Any) -> Any:
    if isinstance(value, dict):
        return _AttrView(value)
    if isinstance(value, list):
        return [(_AttrView(v) if isinstance(v, dict) else v) for v in value]
    return value


class Config(dict):
    """
    Unified configuration for the task manager service.

    The `Config` class consolidates configuration from dictionaries and Pydantic `BaseSettings` or `BaseModel`
    objects, then overlays environment variables that use the double-underscore delimiter
    (`TASKMANAGER__MONGO_URI=...`). Only variables whose first segment names an existing top-level section are
    applied, so unrelated variables in the environment never leak into the config.

    Key Features:
    -------------
    - Accepts `dict`, `BaseModel`, `BaseSettings`, or lists of these.
    - Attr-style and dict-style access to nested keys.
    - Values are stored as strings; callers coerce at the point of use.
    - `SecretStr` fields are masked by default and revealed through `get_secret`.

    Example:
        >>> from taskmanager.config import TaskManagerSettings
        >>> config = Config.load(defaults={"TASKMANAGER": TaskManagerSettings().model_dump()})
        >>> config.TASKMANAGER.JWT_SECRET
        '********'
        >>> config.get_secret("TASKMANAGER", "JWT_SECRET")
        'dev-jwt-secret-change-me-in-production'
    """

    def __init__(
        self,
        extra_settings: SettingsLike = None,
        *,
        apply_env: bool = True,
        secret_paths: Optional[Iterable[Tuple[str, ...]]] = None,
    ):
        self._secret_paths: set[Tuple[str, ...]] = set(secret_paths or ())
        self._secrets: Dict[Tuple[str, ...], str] = {}

        items, paths = self._normalize(extra_settings)
        self._secret_paths.update(paths)

        merged: Dict[str, Any] = {}
        for item in items:
            merged = self._deep_update(merged, item)

        if apply_env:
            merged = self._apply_env_overrides(merged)

        super().__init__(self._stringify_and_mask(merged))

    def __getattr__(self, name: str):
        """Enable attribute-style access for top-level keys."""
        if name in self:
            return _wrap(self[name])
        raise AttributeError(f"No such attribute: {name}")

    @classmethod
    def load(cls, *, defaults: SettingsLike = None, overrides: SettingsLike = None) -> "Config":
        """Create a Config from defaults, then environment variables, then runtime overrides.

        Overrides are applied last so they take precedence over the environment.
        """
        default_items, default_paths = cls._normalize(defaults)
        override_items, override_paths = cls._normalize(overrides)

        base: Dict[str, Any] = {}
        for item in default_items:
            base = cls._deep_update(base, item)
        base = cls._apply_env_overrides(base)
        for item in override_items:
            base = cls._deep_update(base, item)
        return cls([base], apply_env=False, secret_paths=default_paths | override_paths)

    def clone_with_overrides(self, *overrides: SettingsLike) -> "Config":
        """Return a new Config with overrides applied. The original remains unchanged."""
        items: List[Any] = [self.to_revealed_dict()]
        for override in overrides:
            if isinstance(override, list):
                items.extend(override)
            elif override is not None:
                items.append(override)
        return Config(items, apply_env=False, secret_paths=set(self._secrets) | self._secret_paths)

    def get_secret(self, *path: str) -> Optional[str]:
        """Retrieve a secret by path components, e.g. get_secret("TASKMANAGER", "JWT_SECRET")."""
        return self._secrets.get(tuple(path))

    def secret_paths(self) -> List[str]:
        """Return dotted paths of fields considered secrets."""
        return sorted(".".join(p) for p in self._secrets)

    def to_revealed_dict(self) -> Dict[str, Any]:
        """Return a deep copy of the config with secrets revealed."""
        data = deepcopy(dict(self))
        for path, value in self._secrets.items():
            node = data
            for key in path[:-1]:
                node = node.setdefault(key, {})
            node[path[-1]] = value
        return data

    @classmethod
    def _normalize(cls, settings: SettingsLike) -> Tuple[List[Dict[str, Any]], set[Tuple[str, ...]]]:
        if settings is None:
            return [], set()
        if isinstance(settings, list):
            items: List[Dict[str, Any]] = []
            paths: set[Tuple[str, ...]] = set()
            for item in settings:
                sub_items, sub_paths = cls._normalize(item)
                items.extend(sub_items)
                paths.update(sub_paths)
            return items, paths
        if isinstance(settings, (BaseSettings, BaseModel)):
            return [settings.model_dump()], cls._collect_secret_paths(type(settings))
        if isinstance(settings, dict):
            return [settings], set()
        raise TypeError(f"Unsupported settings type: {type(settings).__name__}")

    @staticmethod
    def _deep_update(base: dict, override: dict) -> dict:
        result = deepcopy(base)
        for k, v in (override or {}).items():
            if isinstance(v, BaseModel):
                v = v.model_dump()
            if isinstance(v, dict) and isinstance(result.get(k), dict):
                result[k] = Config._deep_update(result[k], v)
            else:
                result[k] = v
        return result

    @staticmethod
    def _apply_env_overrides(base: dict, delimiter: str = "__") -> dict:
        result = deepcopy(base)
        sections = set(result)
        for env_key, env_value in os.environ.items():
            if delimiter not in env_key:
                continue
            parts = [p.strip().upper() for p in env_key.split(delimiter) if p.strip()]
            if len(parts) < 2 or parts[0] not in sections:
                continue
            node = result
            for key in parts[:-1]:
                if not isinstance(node.get(key), dict):
                    node[key] = {}
                node = node[key]
            # Secret fields stay secret when overridden from the environment
            current = node.get(parts[-1])
            node[parts[-1]] = SecretStr(env_value) if isinstance(current, SecretStr) else env_value
        return result

    def _stringify_and_mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        def convert(v: Any, path: Tuple[str, ...]) -> Any:
            if isinstance(v, SecretStr):
                self._secrets[path] = v.get_secret_value()
                return MASK
            if isinstance(v, dict):
                return {k: convert(x, path + (k,)) for k, x in v.items()}
            if isinstance(v, (list, tuple, set)):
                return [convert(x, path) for x in v]
            if v is None:
                return None
            sval = str(v)
            if path in self._secret_paths:
                self._secrets[path] = sval
                return MASK
            return os.path.expanduser(sval) if sval.startswith("~") else sval

        return convert(data, ())

    @classmethod
    def _collect_secret_paths(cls, model_cls: type, prefix: Tuple[str, ...] = ()) -> set[Tuple[str, ...]]:
        paths: set[Tuple[str, ...]] = set()
        for name, field in getattr(model_cls, "model_fields", {}).items():
            ann = field.annotation
            if ann is SecretStr or SecretStr in getattr(ann, "__args__", ()):
                paths.add(prefix + (name,))
            elif isinstance(ann, type) and issubclass(ann, BaseModel):
                paths.update(cls._collect_secret_paths(ann, prefix + (name,)))
        return paths


def as_bool(value: Any) -> bool:
    """Coerce a stringified config value to a boolean."""
    return str(value).lower() in ("true", "yes", "on", "1")
