"""
Rendering configuration.

Values come from the environment (a .env file is honoured via python-dotenv),
optionally overridden by a YAML file named in QUILL_CONFIG_FILE, then by
keyword overrides passed to load_config().

Environment variables:
    LATEX_COMPILER                  Compiler command or path (default: tectonic)
    QUILL_CACHE_ROOT                Parent of package-cache/ and aux-cache/
    QUILL_TMP_ROOT                  Parent of per-job workspaces
    LOGS_PATH                       Tier 1 logs and the compile event log
    QUILL_MAX_CONCURRENT            Simultaneous compiler processes (default: 1)
    QUILL_MAX_QUEUE                 Waiting jobs before rejecting (default: 8)
    QUILL_COMPILE_TIMEOUT_S         Wall-clock limit per compilation (default: 60)
    QUILL_DIAGNOSTIC_EXCERPT_CHARS  Size of diagnostic excerpts shown to callers (default: 1000)
    QUILL_CACHE_WARN_MB             Cache size that triggers a clear recommendation (default: 100)
    QUILL_ARTIFACT_NAME             File the compiler writes into the workspace (default: texput.pdf)
    QUILL_CONFIG_FILE               Optional YAML file with overrides (keys = CompilerConfig fields)
"""

import os
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv
from omegaconf import OmegaConf

load_dotenv()

# Tectonic reads the document from stdin ("-") and names the output texput.pdf
DEFAULT_COMPILER_ARGS = ("-X", "compile", "-", "--outdir", "{outdir}")
DEFAULT_ARTIFACT_NAME = "texput.pdf"

_PATH_FIELDS = {"cache_root", "tmp_root", "logs_path"}


@dataclass(frozen=True)
class CompilerConfig:
    """
    Settings for the compilation job manager.

    Attributes:
        compiler_path: Compiler command name (looked up on PATH) or path to the binary
        compiler_args: Arguments after the binary; "{outdir}" is replaced by the workspace
        artifact_name: Output file expected in the workspace after a successful run
        cache_root: Parent directory of the shared package and auxiliary caches
        tmp_root: Parent directory of per-job workspaces
        logs_path: Directory for Tier 1 logs and compile_events.log
        max_concurrent: Compiler processes allowed at once
        max_queue: Jobs allowed to wait for a slot before new ones are rejected
        timeout_s: Wall-clock limit for one compilation
        excerpt_chars: Maximum diagnostic excerpt length in caller-facing errors
        cache_warn_mb: Combined cache size above which clearing is recommended
    """

    compiler_path: str = "tectonic"
    compiler_args: Tuple[str, ...] = DEFAULT_COMPILER_ARGS
    artifact_name: str = DEFAULT_ARTIFACT_NAME
    cache_root: Path = Path.home() / ".cache" / "quill"
    tmp_root: Path = Path(tempfile.gettempdir()) / "quill-jobs"
    logs_path: Path = Path("outs/logs")
    max_concurrent: int = 1
    max_queue: int = 8
    timeout_s: float = 60.0
    excerpt_chars: int = 1000
    cache_warn_mb: float = 100.0

    def __post_init__(self):
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got: {self.max_concurrent}")
        if self.max_queue < 0:
            raise ValueError(f"max_queue must be >= 0, got: {self.max_queue}")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got: {self.timeout_s}")
        if self.excerpt_chars < 0:
            raise ValueError(f"excerpt_chars must be >= 0, got: {self.excerpt_chars}")

    @property
    def events_file(self) -> Path:
        return self.logs_path / "compile_events.log"


def _env_number(name: str, cast, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a {cast.__name__}, got: {raw!r}") from None


def _from_environment() -> Dict[str, Any]:
    values: Dict[str, Any] = {}

    if os.getenv("LATEX_COMPILER"):
        values["compiler_path"] = os.getenv("LATEX_COMPILER")
    if os.getenv("QUILL_ARTIFACT_NAME"):
        values["artifact_name"] = os.getenv("QUILL_ARTIFACT_NAME")

    for env_name, field_name in (
        ("QUILL_CACHE_ROOT", "cache_root"),
        ("QUILL_TMP_ROOT", "tmp_root"),
        ("LOGS_PATH", "logs_path"),
    ):
        if os.getenv(env_name):
            values[field_name] = Path(os.getenv(env_name))

    for env_name, field_name, cast in (
        ("QUILL_MAX_CONCURRENT", "max_concurrent", int),
        ("QUILL_MAX_QUEUE", "max_queue", int),
        ("QUILL_COMPILE_TIMEOUT_S", "timeout_s", float),
        ("QUILL_DIAGNOSTIC_EXCERPT_CHARS", "excerpt_chars", int),
        ("QUILL_CACHE_WARN_MB", "cache_warn_mb", float),
    ):
        value = _env_number(env_name, cast, None)
        if value is not None:
            values[field_name] = value

    return values


def _from_yaml(config_file: Path) -> Dict[str, Any]:
    container = OmegaConf.to_container(OmegaConf.load(config_file), resolve=True) or {}
    known = {f.name for f in fields(CompilerConfig)}
    unknown = set(container) - known
    if unknown:
        raise ValueError(f"Unknown keys in {config_file}: {sorted(unknown)}")
    return container


def load_config(config_file: Optional[Path] = None, **overrides) -> CompilerConfig:
    """
    Build a CompilerConfig from environment, optional YAML file and overrides.

    Precedence (lowest to highest): dataclass defaults, environment, YAML file,
    keyword overrides.

    Args:
        config_file: YAML file with CompilerConfig keys (default: QUILL_CONFIG_FILE if set)
        **overrides: Field values that win over everything else

    Returns:
        Validated CompilerConfig

    Raises:
        ValueError: If a value is malformed or out of range

    Example:
        config = load_config(max_concurrent=2, timeout_s=30)
    """
    values = _from_environment()

    config_file = config_file or os.getenv("QUILL_CONFIG_FILE")
    if config_file:
        values.update(_from_yaml(Path(config_file)))

    values.update(overrides)

    for name in _PATH_FIELDS & set(values):
        values[name] = Path(values[name]).expanduser()
    if "compiler_path" in values:
        values["compiler_path"] = str(values["compiler_path"])
    if "compiler_args" in values:
        values["compiler_args"] = tuple(str(arg) for arg in values["compiler_args"])

    return CompilerConfig(**values)
