"""chanindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (CHANINDEX_LANGUAGES, CHANINDEX_TESSDATA_DIR, CHANINDEX_LOG_LEVEL)
  3. Per-project chanindex.yaml  (current working directory)
  4. Global ~/.chanindex/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".chanindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "chanindex.yaml"
_DEFAULT_DATA_DIR: str = str(Path.home() / ".local" / "share" / "chanindex")

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(["ocr", "video", "search", "storage", "logging"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class OcrCfg:
    """OCR configuration (chanindex.yaml: ocr:).

    Attributes:
        languages: Tesseract language sets, one engine each. The first one is
            the primary engine; the rest re-recognize low-confidence crops.
        tessdata_dir: Optional tessdata directory passed to tesseract.
        threshold: Word confidence (0–1) below which a crop is re-recognized.
        chunk_size: Media per committed chunk for bulk runs.
        live_chunk_size: Media per committed chunk for live runs.
        workers: Size of the recognition worker pool (one engine set each).
        timeout: Seconds allowed for a single tesseract call.
    """

    languages: list[str] = field(default_factory=lambda: ["eng"])
    tessdata_dir: str | None = None
    threshold: float = 0.75
    chunk_size: int = 50
    live_chunk_size: int = 1
    workers: int = 2
    timeout: int = 60


@dataclass
class VideoCfg:
    """Frame extraction tools (chanindex.yaml: video:)."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    frame_count: int = 10


@dataclass
class SearchCfg:
    page_size: int = 10


@dataclass
class StorageCfg:
    """Where per-channel databases live (chanindex.yaml: storage:)."""

    data_dir: str = _DEFAULT_DATA_DIR

    def db_path_for(self, channel_dir: Path) -> Path:
        """One logical store per indexed channel, named after its backup directory."""
        name = Path(str(channel_dir).rstrip("/\\")).name
        return Path(self.data_dir).expanduser() / f"{name}.db"


@dataclass
class LoggingCfg:
    level: str = "INFO"
    file: str | None = None


@dataclass
class IndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    ocr: OcrCfg = field(default_factory=OcrCfg)
    video: VideoCfg = field(default_factory=VideoCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: IndexConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    if not cfg.ocr.languages:
        raise ConfigError(
            "ocr.languages must list at least one tesseract language.\n"
            "  Example:  ocr.languages: [eng, rus]"
        )
    if not 0.0 <= cfg.ocr.threshold <= 1.0:
        raise ConfigError(f"ocr.threshold must be within [0, 1], got {cfg.ocr.threshold}")
    for name in ("chunk_size", "live_chunk_size", "workers", "timeout"):
        if getattr(cfg.ocr, name) < 1:
            raise ConfigError(f"ocr.{name} must be >= 1, got {getattr(cfg.ocr, name)}")
    if cfg.video.frame_count < 1:
        raise ConfigError(f"video.frame_count must be >= 1, got {cfg.video.frame_count}")
    if cfg.search.page_size < 1:
        raise ConfigError(f"search.page_size must be >= 1, got {cfg.search.page_size}")
    if cfg.logging.level.upper() not in _LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {', '.join(sorted(_LOG_LEVELS))}, "
            f"got '{cfg.logging.level}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _parse_languages(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [lang.strip() for lang in raw.split(",") if lang.strip()]
    return [str(lang) for lang in raw]


def _cfg_from_dict(data: dict[str, Any]) -> IndexConfig:
    """Build an *IndexConfig* from a merged raw YAML dict."""
    cfg = IndexConfig()

    try:
        if "ocr" in data:
            o = data["ocr"] or {}
            cfg.ocr = OcrCfg(
                languages=_parse_languages(o.get("languages", cfg.ocr.languages)),
                tessdata_dir=o.get("tessdata_dir") or cfg.ocr.tessdata_dir,
                threshold=float(o.get("threshold", cfg.ocr.threshold)),
                chunk_size=int(o.get("chunk_size", cfg.ocr.chunk_size)),
                live_chunk_size=int(o.get("live_chunk_size", cfg.ocr.live_chunk_size)),
                workers=int(o.get("workers", cfg.ocr.workers)),
                timeout=int(o.get("timeout", cfg.ocr.timeout)),
            )

        if "video" in data:
            v = data["video"] or {}
            cfg.video = VideoCfg(
                ffmpeg=str(v.get("ffmpeg", cfg.video.ffmpeg)),
                ffprobe=str(v.get("ffprobe", cfg.video.ffprobe)),
                frame_count=int(v.get("frame_count", cfg.video.frame_count)),
            )

        if "search" in data:
            s = data["search"] or {}
            cfg.search = SearchCfg(page_size=int(s.get("page_size", cfg.search.page_size)))

        if "storage" in data:
            st = data["storage"] or {}
            cfg.storage = StorageCfg(data_dir=str(st.get("data_dir", cfg.storage.data_dir)))

        if "logging" in data:
            lg = data["logging"] or {}
            cfg.logging = LoggingCfg(
                level=str(lg.get("level", cfg.logging.level)).upper(),
                file=lg.get("file") or cfg.logging.file,
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: IndexConfig) -> IndexConfig:
    """Apply CHANINDEX_* environment variable overrides."""
    if languages := os.environ.get("CHANINDEX_LANGUAGES"):
        cfg.ocr.languages = _parse_languages(languages)
    if tessdata := os.environ.get("CHANINDEX_TESSDATA_DIR"):
        cfg.ocr.tessdata_dir = tessdata
    if level := os.environ.get("CHANINDEX_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> IndexConfig:
    """Load and return a merged *IndexConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *chanindex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *IndexConfig*.

    Raises:
        ConfigError: If any layer contains an invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
