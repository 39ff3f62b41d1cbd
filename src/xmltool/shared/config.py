"""Configuration classes for xmltool.

This module provides configuration objects for the repair passes, the audit
component and the command surface, enabling fine-tuned control over repair
behavior and buffering.
"""

import json
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_NAMED_REFERENCES = ("amp", "lt", "gt", "apos", "quot")
VALID_LOGGING_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_REFERENCE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9._-]*")


@dataclass
class CollectorConfig:
    """Configuration for the name-collection pass."""

    chunk_size: int = 8192
    max_name_length: int = 1024
    harvest_processing_instructions: bool = True

    def __post_init__(self) -> None:
        """Validate collector configuration."""
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if self.max_name_length <= 0:
            raise ValueError("max_name_length must be > 0")


@dataclass
class RepairConfig:
    """Configuration for the repair pass and the entity validator."""

    chunk_size: int = 8192
    output_buffer_size: int = 65536
    max_reference_length: int = 10
    named_references: Tuple[str, ...] = DEFAULT_NAMED_REFERENCES
    validate_character_references: bool = True
    normalize_declaration: bool = True
    max_declaration_length: int = 256
    preserve_markup_declarations: bool = False
    spool_max_size: int = 8 * 1024 * 1024

    def __post_init__(self) -> None:
        """Validate repair configuration."""
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if self.output_buffer_size <= 0:
            raise ValueError("output_buffer_size must be > 0")
        if not self.named_references:
            raise ValueError("named_references must not be empty")
        for name in self.named_references:
            if not _REFERENCE_NAME.fullmatch(name):
                raise ValueError(f"named reference {name!r} is not a valid XML name")
        longest = max(len(name) for name in self.named_references)
        if self.max_reference_length < longest + 1:
            raise ValueError(
                f"max_reference_length must be >= {longest + 1} "
                "to fit the longest named reference and its ';'"
            )
        if self.max_declaration_length <= 0:
            raise ValueError("max_declaration_length must be > 0")
        if self.spool_max_size < 0:
            raise ValueError("spool_max_size must be >= 0")


@dataclass
class AuditConfig:
    """Configuration for the audit component."""

    chunk_size: int = 65536
    html_title: str = "XML Audit"

    def __post_init__(self) -> None:
        """Validate audit configuration."""
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if not self.html_title:
            raise ValueError("html_title must not be empty")


@dataclass
class GlobalConfig:
    """Settings shared by every command."""

    logging_level: str = "WARNING"
    enable_correlation_tracking: bool = True
    file_extensions: Tuple[str, ...] = (".xml",)
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate global configuration."""
        if self.logging_level not in VALID_LOGGING_LEVELS:
            raise ValueError(f"logging_level must be one of {VALID_LOGGING_LEVELS}")
        if not self.file_extensions:
            raise ValueError("file_extensions must not be empty")
        for extension in self.file_extensions:
            if not extension.startswith("."):
                raise ValueError(f"file extension {extension!r} must start with '.'")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError("max_workers must be > 0 or None")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


_SECTIONS = ["collector", "repair", "audit", "global_"]


@dataclass(frozen=True)
class XMLToolConfig:
    """Complete configuration for the repair engine, audit and command surface.

    Immutable at the top level; use override() to derive a modified copy.
    """

    collector: CollectorConfig = field(default_factory=CollectorConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    # Metadata
    version: str = "1.0.0"
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete configuration."""
        try:
            self.collector.__post_init__()
            self.repair.__post_init__()
            self.audit.__post_init__()
            self.global_.__post_init__()
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(str(e)) from e

        if self.repair.chunk_size < self.repair.max_reference_length:
            raise ConfigValidationError(
                "repair.chunk_size must be at least repair.max_reference_length",
                field_name="repair.chunk_size",
                suggestions=["Increase repair.chunk_size"],
            )

    def override(self, **kwargs: Any) -> "XMLToolConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Keyword arguments for configuration fields to override

        Returns:
            New XMLToolConfig instance with overrides applied

        Example:
            >>> config = XMLToolConfig()
            >>> new_config = config.override(
            ...     repair__max_reference_length=12,
            ...     global___logging_level="DEBUG"
            ... )
        """
        nested_overrides: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                if component == "global" and field_name.startswith("_"):
                    # global___field splits as ("global", "_field")
                    component, field_name = "global_", field_name[1:]
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                nested_overrides[key] = value

        new_fields = {}
        for section in _SECTIONS:
            current_config = getattr(self, section)
            if section in nested_overrides:
                try:
                    new_fields[section] = replace(
                        current_config, **nested_overrides[section]
                    )
                except (TypeError, ValueError) as e:
                    raise ConfigValidationError(str(e), field_name=section) from e
            else:
                new_fields[section] = current_config

        for key, value in nested_overrides.items():
            if key not in _SECTIONS:
                new_fields[key] = value

        try:
            return replace(self, **new_fields)
        except TypeError as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    name: _dataclass_to_dict(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                }
            if isinstance(obj, (list, tuple, set)):
                return [_dataclass_to_dict(item) for item in obj]
            if isinstance(obj, dict):
                return {key: _dataclass_to_dict(value) for key, value in obj.items()}
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "XMLToolConfig":
        """Create configuration from dictionary.

        Unknown keys are rejected. Lists are turned back into tuples so that a
        JSON round trip yields an equal configuration.

        Args:
            data: Dictionary containing configuration data

        Returns:
            XMLToolConfig instance created from dictionary
        """
        def _dict_to_dataclass(data_dict: Dict[str, Any], target_class: type) -> Any:
            if not isinstance(data_dict, dict):
                raise ConfigValidationError(
                    f"Expected a mapping for {target_class.__name__}"
                )
            known = target_class.__dataclass_fields__
            unknown = sorted(set(data_dict) - set(known))
            if unknown:
                raise ConfigValidationError(
                    f"Unknown {target_class.__name__} fields: {', '.join(unknown)}",
                    field_name=unknown[0],
                )

            field_values: Dict[str, Any] = {}
            for field_name, field_info in known.items():
                if field_name not in data_dict:
                    continue
                value = data_dict[field_name]
                if hasattr(field_info.type, "__dataclass_fields__"):
                    value = _dict_to_dataclass(value, field_info.type)
                elif isinstance(value, list):
                    value = tuple(value)
                field_values[field_name] = value

            try:
                return target_class(**field_values)
            except (TypeError, ValueError) as e:
                raise ConfigValidationError(str(e)) from e

        result = _dict_to_dataclass(data, cls)
        if not isinstance(result, cls):
            raise ConfigValidationError(f"Failed to deserialize to {cls.__name__}")
        return result

    @classmethod
    def from_json(cls, json_str: str) -> "XMLToolConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        return cls.from_dict(data)

    # Preset factory methods
    @classmethod
    def default(cls) -> "XMLToolConfig":
        """Create the default configuration."""
        return cls(name="default")

    @classmethod
    def lenient(cls) -> "XMLToolConfig":
        """Create a preset that also passes comments, CDATA and DOCTYPE through."""
        return cls(
            repair=RepairConfig(preserve_markup_declarations=True),
            name="lenient",
            description=(
                "Keeps comments, CDATA sections and DOCTYPE declarations verbatim"
            ),
        )

    @classmethod
    def strict(cls) -> "XMLToolConfig":
        """Create a preset that never rewrites a declaration."""
        return cls(
            repair=RepairConfig(
                normalize_declaration=False,
                validate_character_references=True,
            ),
            name="strict",
            description=(
                "Escapes defective XML declarations instead of normalizing them"
            ),
        )
