"""
Configuration management for lossless-mirror.

This module handles loading, validating, and providing access to the
application configuration. Settings come from several sources, in
increasing order of precedence:

    1. Built-in defaults
    2. YAML configuration file
    3. Environment variables (a .env file in the working directory is loaded)
    4. Command-line flags (applied by the CLI with with_overrides())

Configuration File Location:
    The first existing file of:
        - the path given with --config
        - ./lossless-mirror.yaml
        - ~/.config/lossless-mirror/config.yaml
    A missing file is not an error; the defaults are used.

Example lossless-mirror.yaml:
    conversion:
      format: flac            # flac | alac
      compression_level: 8    # FLAC only, 0..12
      sample_rate: null       # keep the source rate
      encoder: ffmpeg         # ffmpeg | pydub
      timeout: null           # seconds per file, null = no limit
      keep_untagged: false

    library:
      cover_name: cover.jpg
      embed_cover: true

    runtime:
      threads: null           # defaults to the number of CPUs

    logging:
      level: INFO
      file: ~/.cache/lossless-mirror/lossless-mirror.log
      max_size: 10MB
      backup_count: 3
      colored: true

Environment Variables:
    LOSSLESS_MIRROR_FORMAT, LOSSLESS_MIRROR_ENCODER, LOSSLESS_MIRROR_THREADS,
    LOSSLESS_MIRROR_COVER_NAME, LOSSLESS_MIRROR_LOG_FILE
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from lossless_mirror.core.exceptions import ConfigError
from lossless_mirror.core.formats import (
    MAX_FLAC_COMPRESSION,
    MIN_FLAC_COMPRESSION,
    AudioFormat,
    EncodingOptions,
)
from lossless_mirror.core.logger import parse_size


CONFIG_FILENAME = "lossless-mirror.yaml"
USER_CONFIG_PATH = Path("~/.config/lossless-mirror/config.yaml")

ENCODER_BACKENDS = ("ffmpeg", "pydub")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_SECTIONS = ("conversion", "library", "runtime", "logging")


@dataclass(frozen=True)
class ConversionConfig:
    """
    Encoding behavior.

    Attributes:
        format: Target lossless format.
        compression_level: FLAC compression level (0..12), None for the default (4).
        sample_rate: Output sample rate override in Hz, None keeps the source rate.
        encoder: Encoding backend name, one of ENCODER_BACKENDS.
        timeout: Per-file encoding time limit in seconds, None for no limit.
        keep_untagged: Publish the encoded file even if tagging failed.
                       By default a file that cannot be tagged is discarded
                       so that the next run retries it.
    """
    format: AudioFormat = AudioFormat.FLAC
    compression_level: int | None = None
    sample_rate: int | None = None
    encoder: str = "ffmpeg"
    timeout: float | None = None
    keep_untagged: bool = False

    def encoding_options(self) -> EncodingOptions:
        return EncodingOptions(
            format=self.format,
            compression_level=self.compression_level,
            sample_rate=self.sample_rate,
        )


@dataclass(frozen=True)
class LibraryConfig:
    """
    Music library conventions.

    Attributes:
        cover_name: Exact file name of sidecar cover images (e.g. cover.jpg).
        embed_cover: Embed the album's cover image into each converted file.
    """
    cover_name: str = "cover.jpg"
    embed_cover: bool = True


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Worker pool settings.

    Attributes:
        threads: Number of conversion workers. None means one per logical CPU.
    """
    threads: int | None = None

    @property
    def worker_count(self) -> int:
        return self.threads or os.cpu_count() or 1


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging output settings.

    Attributes:
        level: Console log level name.
        file: Optional path of a rotating log file. When set, a
              failures.log report is written next to it.
        max_size: Maximum log file size before rotation (e.g. "10MB"). A bare
                  integer in the YAML file is a byte count.
        backup_count: Number of rotated log files to keep.
        colored: Use colors on the console.
        quiet: Silence console output and progress bars.
    """
    level: str = "INFO"
    file: Path | None = None
    max_size: str = "10MB"
    backup_count: int = 3
    colored: bool = True
    quiet: bool = False


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable. Command-line flags
    are layered on top with with_overrides().

    Example:
        config = load_config()
        print(f"Converting to {config.conversion.format.codec_name}")
        print(f"Using {config.runtime.worker_count} workers")
    """
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_overrides(self, **sections: dict[str, Any]) -> "Config":
        """
        Return a copy with some fields replaced.

        Each keyword names a section and maps field names to new values.
        None values are ignored so unset CLI options keep the file value.
        The result is validated again.

        Example:
            config.with_overrides(conversion={"format": "alac"}, runtime={"threads": 2})
        """
        raw = _to_raw(self)
        for section, values in sections.items():
            if section not in raw:
                raise ConfigError(f"Unknown configuration section: '{section}'")
            for key, value in values.items():
                if value is not None:
                    raw[section][key] = value
        return _parse_config(raw)


def load_config(config_path: Path | None = None, use_environment: bool = True) -> Config:
    """
    Load and validate the configuration.

    Args:
        config_path: Optional explicit path to a YAML file. If given, the
                     file must exist.
        use_environment: Apply LOSSLESS_MIRROR_* environment variables
                         (after loading a .env file if present).

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the file is missing (explicit path only), has
                     invalid YAML syntax, has sections that are not
                     mappings, or contains invalid values.
    """
    raw = _to_raw(Config())

    path = _locate_config_file(config_path)
    if path is not None:
        _merge(raw, _read_yaml(path))

    if use_environment:
        load_dotenv(find_dotenv(usecwd=True))
        _apply_environment(raw)

    return _parse_config(raw)


def _locate_config_file(config_path: Path | None) -> Path | None:
    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigError(
                f"Config file not found: {path}",
                details={"path": str(path)}
            )
        return path

    for candidate in (Path.cwd() / CONFIG_FILENAME, USER_CONFIG_PATH.expanduser()):
        if candidate.is_file():
            return candidate
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in {path}: {e}",
            details={"path": str(path)}
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Cannot read config file {path}: {e}",
            details={"path": str(path)}
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping",
            details={"path": str(path)}
        )
    return data


def _merge(raw: dict[str, dict[str, Any]], data: dict[str, Any]) -> None:
    for section, values in data.items():
        if section not in _SECTIONS:
            raise ConfigError(
                f"Unknown configuration section: '{section}'",
                details={"section": section}
            )
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )
        raw[section].update(values)


def _apply_environment(raw: dict[str, dict[str, Any]]) -> None:
    env_mappings = {
        "LOSSLESS_MIRROR_FORMAT": ("conversion", "format"),
        "LOSSLESS_MIRROR_ENCODER": ("conversion", "encoder"),
        "LOSSLESS_MIRROR_THREADS": ("runtime", "threads"),
        "LOSSLESS_MIRROR_COVER_NAME": ("library", "cover_name"),
        "LOSSLESS_MIRROR_LOG_FILE": ("logging", "file"),
    }
    for env_var, (section, key) in env_mappings.items():
        value = os.getenv(env_var)
        if value:
            raw[section][key] = value


def _to_raw(config: Config) -> dict[str, dict[str, Any]]:
    return {
        "conversion": dict(vars(config.conversion)),
        "library": dict(vars(config.library)),
        "runtime": dict(vars(config.runtime)),
        "logging": dict(vars(config.logging)),
    }


def _parse_config(raw: dict[str, dict[str, Any]]) -> Config:
    return Config(
        conversion=_parse_conversion_config(raw["conversion"]),
        library=_parse_library_config(raw["library"]),
        runtime=_parse_runtime_config(raw["runtime"]),
        logging=_parse_logging_config(raw["logging"]),
    )


def _parse_conversion_config(section: dict[str, Any]) -> ConversionConfig:
    """
    Parse and validate the conversion section.

    Raises:
        ConfigError: On unknown keys, an unknown format or encoder, a
                     compression level outside 0..12, or a non-positive
                     sample rate or timeout.
    """
    _reject_unknown_keys("conversion", section, ConversionConfig)

    audio_format = AudioFormat.parse(section["format"])

    compression_level = _optional_int(section, "conversion", "compression_level")
    if compression_level is not None and not (
        MIN_FLAC_COMPRESSION <= compression_level <= MAX_FLAC_COMPRESSION
    ):
        raise ConfigError(
            f"'conversion.compression_level' must be between "
            f"{MIN_FLAC_COMPRESSION} and {MAX_FLAC_COMPRESSION}",
            details={"field": "conversion.compression_level", "value": compression_level}
        )

    sample_rate = _optional_int(section, "conversion", "sample_rate", positive=True)

    encoder = str(section["encoder"]).strip().lower()
    if encoder not in ENCODER_BACKENDS:
        raise ConfigError(
            f"Unknown encoder backend: {encoder} "
            f"(supported backends: {', '.join(ENCODER_BACKENDS)})",
            details={"field": "conversion.encoder", "value": encoder}
        )

    timeout = section["timeout"]
    if timeout is not None:
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            timeout = -1.0
        if timeout <= 0:
            raise ConfigError(
                "'conversion.timeout' must be a positive number of seconds",
                details={"field": "conversion.timeout", "value": section["timeout"]}
            )

    return ConversionConfig(
        format=audio_format,
        compression_level=compression_level,
        sample_rate=sample_rate,
        encoder=encoder,
        timeout=timeout,
        keep_untagged=_bool(section, "conversion", "keep_untagged"),
    )


def _parse_library_config(section: dict[str, Any]) -> LibraryConfig:
    _reject_unknown_keys("library", section, LibraryConfig)

    cover_name = section["cover_name"]
    if not isinstance(cover_name, str) or not cover_name.strip():
        raise ConfigError(
            "'library.cover_name' must be a non-empty string",
            details={"field": "library.cover_name"}
        )
    cover_name = cover_name.strip()
    if Path(cover_name).name != cover_name:
        raise ConfigError(
            "'library.cover_name' must be a file name, not a path",
            details={"field": "library.cover_name", "value": cover_name}
        )

    return LibraryConfig(
        cover_name=cover_name,
        embed_cover=_bool(section, "library", "embed_cover"),
    )


def _parse_runtime_config(section: dict[str, Any]) -> RuntimeConfig:
    _reject_unknown_keys("runtime", section, RuntimeConfig)
    return RuntimeConfig(threads=_optional_int(section, "runtime", "threads", positive=True))


def _parse_logging_config(section: dict[str, Any]) -> LoggingConfig:
    _reject_unknown_keys("logging", section, LoggingConfig)

    level = str(section["level"]).strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level: {section['level']}",
            details={"field": "logging.level", "value": section["level"]}
        )

    log_file = section["file"]
    if log_file is not None:
        if not isinstance(log_file, (str, Path)) or not str(log_file).strip():
            raise ConfigError(
                "'logging.file' must be a path or null",
                details={"field": "logging.file"}
            )
        log_file = Path(str(log_file).strip()).expanduser().resolve()

    backup_count = _optional_int(section, "logging", "backup_count")
    if backup_count is None or backup_count < 0:
        raise ConfigError(
            "'logging.backup_count' must be a non-negative integer",
            details={"field": "logging.backup_count", "value": section["backup_count"]}
        )

    raw_size = section["max_size"]
    max_size = f"{raw_size}B" if type(raw_size) is int else str(raw_size).strip()  # bare int: bytes
    try:
        valid_size = not isinstance(raw_size, bool) and parse_size(max_size) > 0
    except ValueError:
        valid_size = False
    if not valid_size:
        raise ConfigError(
            "'logging.max_size' must be a size like 10MB",
            details={"field": "logging.max_size", "value": raw_size}
        )

    return LoggingConfig(
        level=level,
        file=log_file,
        max_size=max_size,
        backup_count=backup_count,
        colored=_bool(section, "logging", "colored"),
        quiet=_bool(section, "logging", "quiet"),
    )


def _reject_unknown_keys(section_name: str, section: dict[str, Any], dataclass_type: type) -> None:
    known = set(dataclass_type.__dataclass_fields__)
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(
            f"Unknown key(s) in section '{section_name}': {', '.join(unknown)}",
            details={"section": section_name, "keys": unknown}
        )


def _optional_int(
    section: dict[str, Any],
    section_name: str,
    key: str,
    positive: bool = False
) -> int | None:
    value = section[key]
    if value is None:
        return None
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip())
        except ValueError:
            parsed = None
    if parsed is None or (positive and parsed < 1):
        kind = "a positive integer" if positive else "an integer"
        raise ConfigError(
            f"'{section_name}.{key}' must be {kind}",
            details={"field": f"{section_name}.{key}", "value": value}
        )
    return parsed


def _bool(section: dict[str, Any], section_name: str, key: str) -> bool:
    value = section[key]
    if not isinstance(value, bool):
        raise ConfigError(
            f"'{section_name}.{key}' must be true or false",
            details={"field": f"{section_name}.{key}", "value": value}
        )
    return value


__all__ = [
    "Config",
    "ConversionConfig",
    "LibraryConfig",
    "RuntimeConfig",
    "LoggingConfig",
    "ENCODER_BACKENDS",
    "load_config",
]
