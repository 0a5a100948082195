"""
Loader configuration.

PipelineConfig is read from LOGFERRY_* environment variables or a YAML
file. build_clients turns it into the collaborator variants the pipeline
runs against.

Expected YAML format:
```yaml
max_workers: 32
insert_chunk_size: 256
audit:
  dataset: logferry
  table: load_logs
object_store:
  backend: s3
  aws_region: eu-west-1
warehouse:
  backend: postgres
queue:
  backend: dump
  dump_dir: ./data/queue
```
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

from logferry.core.errors import ConfigurationError
from logferry.messaging import DumpQueue, MemoryQueue, MessageQueue
from logferry.observability.logger import get_logger, setup_logger
from logferry.observability.metrics import start_metrics_server
from logferry.policy import PolicyEvaluator
from logferry.storage import LocalObjectStore, MemoryObjectStore, ObjectStore, S3ObjectStore, create_s3_client
from logferry.warehouse import DumpWarehouse, MemoryWarehouse, Warehouse

logger = get_logger(__name__)

ENV_PREFIX = "LOGFERRY_"

# Flat environment variable -> (section, key); section None for top-level keys
ENV_KEYS: dict[str, tuple[str | None, str]] = {
    "MAX_WORKERS": (None, "max_workers"),
    "INSERT_CHUNK_SIZE": (None, "insert_chunk_size"),
    "LOG_LEVEL": (None, "log_level"),
    "LOG_FORMAT": (None, "log_format"),
    "METRICS_PORT": (None, "metrics_port"),
    "AUDIT_DATASET": ("audit", "dataset"),
    "AUDIT_TABLE": ("audit", "table"),
    "OBJECT_STORE": ("object_store", "backend"),
    "OBJECT_STORE_ROOT": ("object_store", "root"),
    "AWS_PROFILE": ("object_store", "aws_profile"),
    "AWS_REGION": ("object_store", "aws_region"),
    "WAREHOUSE": ("warehouse", "backend"),
    "WAREHOUSE_DUMP_DIR": ("warehouse", "dump_dir"),
    "QUEUE": ("queue", "backend"),
    "QUEUE_DUMP_DIR": ("queue", "dump_dir"),
    "ENQUEUE_COUNT_LIMIT": ("enqueue", "count_limit"),
    "ENQUEUE_SIZE_LIMIT": ("enqueue", "size_limit"),
}


class AuditConfig(BaseModel):
    """Audit table receiving one LoadLog row per load call (disabled when unset)."""

    dataset: str | None = None
    table: str | None = None

    class Config:
        extra = "forbid"

    @property
    def enabled(self) -> bool:
        return bool(self.dataset and self.table)


class ObjectStoreConfig(BaseModel):
    backend: Literal["memory", "local", "s3"] = "local"
    root: str = "./data/objects"
    aws_profile: str | None = None
    aws_region: str | None = None

    class Config:
        extra = "forbid"


class WarehouseConfig(BaseModel):
    backend: Literal["memory", "dump", "postgres"] = "dump"
    dump_dir: str = "./data/warehouse"

    class Config:
        extra = "forbid"


class QueueConfig(BaseModel):
    backend: Literal["memory", "dump"] = "dump"
    dump_dir: str = "./data/queue"

    class Config:
        extra = "forbid"


class EnqueueConfig(BaseModel):
    """Per message limits: object count, and total object bytes."""

    count_limit: int = Field(128, ge=1)
    size_limit: int = Field(4 * 1024 * 1024, ge=1)

    class Config:
        extra = "forbid"


class PipelineConfig(BaseModel):
    """
    Complete loader configuration.

    Attributes:
        max_workers: Concurrent source imports
        insert_chunk_size: Maximum rows per warehouse insert call
        log_level: Log level of the "logferry" logger
        log_format: "json" or "text"
        metrics_port: Port of the Prometheus endpoint (disabled when None)
    """

    max_workers: int = Field(32, ge=1)
    insert_chunk_size: int = Field(256, ge=1)
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    metrics_port: int | None = None
    audit: AuditConfig = Field(default_factory=AuditConfig)
    object_store: ObjectStoreConfig = Field(default_factory=ObjectStoreConfig)
    warehouse: WarehouseConfig = Field(default_factory=WarehouseConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    enqueue: EnqueueConfig = Field(default_factory=EnqueueConfig)

    class Config:
        extra = "forbid"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "PipelineConfig":
        """
        Validate a configuration mapping.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid
        """
        try:
            return cls.model_validate(dict(values))
        except ValidationError as e:
            fields = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
            raise ConfigurationError(f"invalid configuration: {e}", fields=fields) from e

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """
        Build configuration from LOGFERRY_* environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Returns:
            PipelineConfig with defaults for every unset variable
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for suffix, (section, key) in ENV_KEYS.items():
            raw = environ.get(f"{ENV_PREFIX}{suffix}")
            if raw is None or raw == "":
                continue
            target = values if section is None else values.setdefault(section, {})
            target[key] = raw
        return cls.from_mapping(values)


class ConfigLoader:
    """
    Loads PipelineConfig from a YAML file.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise ConfigurationError("configuration file not found", path=str(config_path))

    def load(self) -> PipelineConfig:
        """
        Load and validate the configuration file.

        Returns:
            PipelineConfig

        Raises:
            ConfigurationError: If the YAML is invalid or not a mapping
        """
        with open(self.config_path) as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"invalid YAML: {e}", path=str(self.config_path)) from e

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigurationError("configuration file must contain a mapping", path=str(self.config_path))

        return PipelineConfig.from_mapping(config)


@dataclass
class Clients:
    """Collaborators of one pipeline instance."""

    object_store: ObjectStore
    policy: PolicyEvaluator
    warehouse: Warehouse
    queue: MessageQueue | None = None


def build_clients(config: PipelineConfig, policy: PolicyEvaluator) -> Clients:
    """
    Create the collaborator variants selected by the configuration.

    Args:
        config: Loader configuration
        policy: Policy evaluator (policies are code, not configuration)

    Returns:
        Clients container

    Raises:
        ConfigurationError: If a backend cannot be created
    """
    store_config = config.object_store
    if store_config.backend == "memory":
        object_store = MemoryObjectStore()
    elif store_config.backend == "local":
        object_store = LocalObjectStore(store_config.root)
    else:
        object_store = S3ObjectStore(create_s3_client(store_config.aws_profile, store_config.aws_region))

    warehouse_config = config.warehouse
    if warehouse_config.backend == "memory":
        warehouse = MemoryWarehouse()
    elif warehouse_config.backend == "dump":
        warehouse = DumpWarehouse(warehouse_config.dump_dir)
    else:
        # psycopg is only imported when the postgres backend is selected
        from logferry.warehouse.connection import DatabaseConnectionPool
        from logferry.warehouse.postgres import PostgresWarehouse

        pool = DatabaseConnectionPool()
        pool.open()
        warehouse = PostgresWarehouse(pool)

    if config.queue.backend == "memory":
        queue = MemoryQueue()
    else:
        queue = DumpQueue(config.queue.dump_dir)

    logger.info(
        "Built clients",
        extra={
            "object_store": store_config.backend,
            "warehouse": warehouse_config.backend,
            "queue": config.queue.backend,
        },
    )
    return Clients(object_store=object_store, policy=policy, warehouse=warehouse, queue=queue)


def setup_observability(config: PipelineConfig) -> None:
    """Configure the "logferry" logger and start the metrics endpoint if a port is set."""
    setup_logger(level=config.log_level, format_type=config.log_format)
    if config.metrics_port is not None:
        start_metrics_server(config.metrics_port)
