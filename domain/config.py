"""
Configuration domain models.

Validated configuration objects for the orchestrator.
"""

from dataclasses import dataclass, field

from .enums import OriginChannel, Priority


@dataclass(frozen=True)
class ExecutionConfig:
    """Configuration for the commit sequence."""

    handler_timeout_sec: float = 30.0
    lock_poll_interval_sec: float = 0.05
    handler_workers: int = 8
    strict_registry: bool = True

    def __post_init__(self):
        """Validate execution configuration."""
        if self.handler_timeout_sec <= 0:
            raise ValueError(f"handler_timeout_sec must be positive, got {self.handler_timeout_sec}")
        if self.lock_poll_interval_sec <= 0:
            raise ValueError(f"lock_poll_interval_sec must be positive, got {self.lock_poll_interval_sec}")
        if self.handler_workers <= 0:
            raise ValueError(f"handler_workers must be positive, got {self.handler_workers}")


@dataclass(frozen=True)
class AdvisoryConfig:
    """Configuration for the advisory side channel."""

    enabled: bool = True
    queue_size: int = 1000
    workers: int = 1

    def __post_init__(self):
        """Validate advisory configuration."""
        if self.queue_size <= 0:
            raise ValueError(f"queue_size must be positive, got {self.queue_size}")
        if self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")


@dataclass(frozen=True)
class SimulationConfig:
    """Configuration for simulated runs driven from the CLI."""

    instances: int = 1
    threads: int = 4
    channel: OriginChannel = OriginChannel.SIMULATION
    priority: Priority = Priority.STANDARD
    max_steps: int = 50
    show_progress_bar: bool = True

    def __post_init__(self):
        """Validate simulation configuration."""
        if self.instances <= 0:
            raise ValueError(f"instances must be positive, got {self.instances}")
        if self.threads <= 0:
            raise ValueError(f"threads must be positive, got {self.threads}")
        if self.max_steps <= 0:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Complete orchestrator configuration.

    Immutable configuration object validated at creation.
    """

    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    advisory: AdvisoryConfig = field(default_factory=AdvisoryConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    # Run metadata
    run_name: str = "pipeline_run"

    def __post_init__(self):
        """Validate pipeline configuration."""
        if not self.run_name:
            raise ValueError("run_name cannot be empty")

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'PipelineConfig':
        """
        Create PipelineConfig from a dictionary (e.g., loaded from YAML).

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Validated PipelineConfig instance
        """
        config_dict = config_dict or {}

        exec_dict = config_dict.get("orchestrator", {}) or {}
        execution = ExecutionConfig(
            handler_timeout_sec=float(exec_dict.get("handler_timeout_sec", 30.0)),
            lock_poll_interval_sec=float(exec_dict.get("lock_poll_interval_sec", 0.05)),
            handler_workers=int(exec_dict.get("handler_workers", 8)),
            strict_registry=bool(exec_dict.get("strict_registry", True)),
        )

        advisory_dict = config_dict.get("advisory", {}) or {}
        advisory = AdvisoryConfig(
            enabled=bool(advisory_dict.get("enabled", True)),
            queue_size=int(advisory_dict.get("queue_size", 1000)),
            workers=int(advisory_dict.get("workers", 1)),
        )

        sim_dict = config_dict.get("simulation", {}) or {}
        simulation = SimulationConfig(
            instances=int(sim_dict.get("instances", 1)),
            threads=int(sim_dict.get("threads", 4)),
            channel=OriginChannel(str(sim_dict.get("channel", "SIMULATION")).upper()),
            priority=Priority.parse(sim_dict.get("priority", "STANDARD")),
            max_steps=int(sim_dict.get("max_steps", 50)),
            show_progress_bar=bool(sim_dict.get("show_progress_bar", True)),
        )

        run_metadata = config_dict.get("run_metadata", {}) or {}

        return cls(
            execution=execution,
            advisory=advisory,
            simulation=simulation,
            run_name=run_metadata.get("run_name", "pipeline_run"),
        )
