"""
Configuration management for dotnet_diagnose.

Supports:
- TOML config files
- Command-line overrides
- Defaults matching the stock /tools image layout

Priority (highest to lowest):
1. Command-line arguments
2. Config file
3. Defaults
"""

from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any, List

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Older Python

from .protocol.artifacts import ArtifactKind, PIPELINE_ORDER
from .protocol.errors import ConfigError


# Default config file locations (searched in order)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / "dotnet_diagnose.toml",
    Path.home() / ".config" / "dotnet_diagnose" / "config.toml",
]

DEFAULT_TOOLS_DIR = "/tools"
DEFAULT_COUNTERS = "System.Runtime,System.Threading.Tasks.TplEventSource"
UPLOAD_SUCCESS_MARKER = "Final Job Status: Completed"


@dataclass
class ToolsConfig:
    """Paths of the external diagnostic tools."""
    trace: str = f"{DEFAULT_TOOLS_DIR}/dotnet-trace"
    dump: str = f"{DEFAULT_TOOLS_DIR}/dotnet-dump"
    stack: str = f"{DEFAULT_TOOLS_DIR}/dotnet-stack"
    counters: str = f"{DEFAULT_TOOLS_DIR}/dotnet-counters"
    azcopy: str = f"{DEFAULT_TOOLS_DIR}/azcopy"

    @classmethod
    def from_dir(cls, tools_dir: str) -> "ToolsConfig":
        base = tools_dir.rstrip("/")
        return cls(
            trace=f"{base}/dotnet-trace",
            dump=f"{base}/dotnet-dump",
            stack=f"{base}/dotnet-stack",
            counters=f"{base}/dotnet-counters",
            azcopy=f"{base}/azcopy",
        )

    def all_paths(self) -> List[str]:
        return [self.counters, self.trace, self.dump, self.stack, self.azcopy]


@dataclass
class ProcessConfig:
    """How the target process is located."""
    runtime_path: str = "/usr/share/dotnet/dotnet"
    on_multiple: str = "first"  # first | error
    pid: Optional[int] = None


@dataclass
class EnvironmentConfig:
    """Names of the variables read from the target process environment."""
    host_variable: str = "COMPUTERNAME"
    destination_variable: str = "DIAGNOSTICS_AZUREBLOBCONTAINERSASURL"


@dataclass
class CollectionConfig:
    """Collection windows and pipeline shape."""
    trace_duration: int = 60
    counter_window: int = 300
    counter_ready_timeout: float = 60.0
    counter_list: str = DEFAULT_COUNTERS
    counter_refresh_interval: int = 1
    settle_delay: float = 5.0
    kinds: List[str] = field(default_factory=lambda: [k.value for k in PIPELINE_ORDER])

    def pipeline(self) -> List[ArtifactKind]:
        """Selected kinds, always in the fixed pipeline order."""
        selected = {ArtifactKind.from_name(k) for k in self.kinds}
        return [k for k in PIPELINE_ORDER if k in selected]


@dataclass
class UploadConfig:
    """Upload retry policy."""
    max_attempts: int = 5
    retry_delay: float = 3.0
    success_marker: str = UPLOAD_SUCCESS_MARKER


@dataclass
class TimeoutsConfig:
    """Optional hard limits (seconds) for tools with no built-in bound."""
    dump: Optional[float] = None
    stack: Optional[float] = None
    upload: Optional[float] = None
    trace_grace: float = 30.0


@dataclass
class TeardownConfig:
    """Signal-driven cleanup behaviour."""
    grace_period: float = 2.0
    sweep_tool_paths: bool = True


@dataclass
class OutputConfig:
    """Output configuration."""
    dir: str = "."
    summary_json: Optional[str] = None
    quiet: bool = False
    verbose: bool = False
    plain: bool = False
    log_file: Optional[str] = None


@dataclass
class Config:
    """Main configuration container."""
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    process: ProcessConfig = field(default_factory=ProcessConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    collection: CollectionConfig = field(default_factory=CollectionConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    teardown: TeardownConfig = field(default_factory=TeardownConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Source tracking
    _config_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load configuration from file.

        Args:
            config_path: Explicit path to config file. If None, searches default locations.

        Returns:
            Config instance with loaded values
        """
        config = cls()

        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigError(f"Config file not found: {config_path}")
        else:
            path = cls._find_config_file()

        if path:
            config = cls._load_from_file(path)
            config._config_file = path

        return config

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find config file in default locations."""
        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                return path
        return None

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load config from TOML file."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary (unknown keys are rejected)."""
        config = cls()
        sections = {
            "tools": ToolsConfig,
            "process": ProcessConfig,
            "environment": EnvironmentConfig,
            "collection": CollectionConfig,
            "upload": UploadConfig,
            "timeouts": TimeoutsConfig,
            "teardown": TeardownConfig,
            "output": OutputConfig,
        }

        for name, section_cls in sections.items():
            if name not in data:
                continue
            raw = data[name]
            if not isinstance(raw, dict):
                raise ConfigError(f"[{name}] must be a table")

            # [tools] dir = "/opt/tools" expands to every tool path
            if name == "tools" and "dir" in raw:
                raw = dict(raw)
                base = ToolsConfig.from_dir(raw.pop("dir"))
                current = base
            else:
                current = getattr(config, name)

            known = {f.name for f in fields(section_cls)}
            unknown = sorted(set(raw) - known)
            if unknown:
                raise ConfigError(f"Unknown key(s) in [{name}]: {', '.join(unknown)}")

            values = {f.name: getattr(current, f.name) for f in fields(section_cls)}
            values.update(raw)
            setattr(config, name, section_cls(**values))

        return config

    def override_from_args(self, args) -> "Config":
        """
        Override config values from argparse namespace.

        Args with value None are ignored (keeping config file values).
        """
        if getattr(args, "tools_dir", None):
            self.tools = ToolsConfig.from_dir(args.tools_dir)
        if getattr(args, "pid", None) is not None:
            self.process.pid = args.pid
        if getattr(args, "on_multiple", None):
            self.process.on_multiple = args.on_multiple

        if getattr(args, "trace_duration", None) is not None:
            self.collection.trace_duration = args.trace_duration
        if getattr(args, "counter_window", None) is not None:
            self.collection.counter_window = args.counter_window
        if getattr(args, "settle_delay", None) is not None:
            self.collection.settle_delay = args.settle_delay
        if getattr(args, "skip", None):
            skipped = {ArtifactKind.from_name(k) for k in args.skip}
            self.collection.kinds = [k.value for k in self.collection.pipeline() if k not in skipped]

        if getattr(args, "max_attempts", None) is not None:
            self.upload.max_attempts = args.max_attempts

        if getattr(args, "output_dir", None):
            self.output.dir = args.output_dir
        if getattr(args, "summary_json", None):
            self.output.summary_json = args.summary_json
        if getattr(args, "log_file", None):
            self.output.log_file = args.log_file
        if getattr(args, "quiet", None):
            self.output.quiet = args.quiet
        if getattr(args, "verbose", None):
            self.output.verbose = args.verbose
        if getattr(args, "plain", None):
            self.output.plain = args.plain

        return self

    def validate(self) -> list:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.process.on_multiple not in ("first", "error"):
            errors.append("process.on_multiple must be 'first' or 'error'")
        if not self.process.runtime_path:
            errors.append("process.runtime_path is required")
        if self.process.pid is not None and self.process.pid <= 0:
            errors.append("process.pid must be a positive integer")

        if not self.environment.host_variable or not self.environment.destination_variable:
            errors.append("environment variable names must not be empty")

        if self.collection.trace_duration < 1:
            errors.append("collection.trace_duration must be at least 1 second")
        if self.collection.counter_window < 0:
            errors.append("collection.counter_window must not be negative")
        if self.collection.counter_ready_timeout <= 0:
            errors.append("collection.counter_ready_timeout must be positive")
        if self.collection.settle_delay < 0:
            errors.append("collection.settle_delay must not be negative")
        try:
            self.collection.pipeline()
        except ValueError as e:
            errors.append(str(e))

        if self.upload.max_attempts < 1:
            errors.append("upload.max_attempts must be at least 1")
        if self.upload.retry_delay < 0:
            errors.append("upload.retry_delay must not be negative")
        if not self.upload.success_marker:
            errors.append("upload.success_marker must not be empty")

        for name in ("dump", "stack", "upload"):
            value = getattr(self.timeouts, name)
            if value is not None and value <= 0:
                errors.append(f"timeouts.{name} must be positive when set")

        return errors

    def summary(self, include_config_path: bool = True) -> str:
        """Generate human-readable config summary."""
        lines = []

        if include_config_path:
            if self._config_file:
                lines.append(f"Config: {self._config_file}")
            else:
                lines.append("Config: (defaults)")

        if self.process.pid:
            lines.append(f"Target: pid {self.process.pid} (explicit)")
        else:
            lines.append(f"Target: {self.process.runtime_path} (on multiple: {self.process.on_multiple})")

        lines.append(f"Tools: {str(Path(self.tools.trace).parent)}")
        lines.append(f"Stages: {', '.join(k.value for k in self.collection.pipeline())}")
        lines.append(
            f"Collection: trace {self.collection.trace_duration}s, "
            f"counters {self.collection.counter_window}s, settle {self.collection.settle_delay}s"
        )
        lines.append(f"Upload: {self.upload.max_attempts} attempts, {self.upload.retry_delay}s apart")
        lines.append(f"Output: {self.output.dir}")

        return "\n".join(lines)


def create_example_config(path: str = "dotnet_diagnose.toml") -> Path:
    """Create example config file."""
    target = Path(path)

    if target.exists():
        raise FileExistsError(f"Config file already exists: {path}")

    target.write_text("""# dotnet_diagnose configuration

[tools]
dir = "/tools"

[process]
runtime_path = "/usr/share/dotnet/dotnet"
on_multiple = "first"   # or "error"

[environment]
host_variable = "COMPUTERNAME"
destination_variable = "DIAGNOSTICS_AZUREBLOBCONTAINERSASURL"

[collection]
trace_duration = 60
counter_window = 300
counter_ready_timeout = 60.0
settle_delay = 5.0
kinds = ["trace", "dump", "stack", "counters"]

[upload]
max_attempts = 5
retry_delay = 3.0

[timeouts]
# dump = 600
# stack = 120
# upload = 900

[teardown]
grace_period = 2.0
sweep_tool_paths = true

[output]
dir = "."
""")

    return target
