"""
Async logging for the compression pipeline.

Per-pass trace lines go through ``OptimizedPipelineLogger.log_phase``: the
message is emitted through standard logging while a background worker keeps
throughput statistics. ``PerformanceMonitor`` records pass timings.
"""

import logging
import os
import queue
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.jsonc_parser import load_jsonc

# Logger for async logging setup messages
async_setup_logger = logging.getLogger('async_logger')

SERVER_CONFIG_PATH = Path(__file__).parent.parent / "config" / "server.jsonc"

TRACKED_PHASE_KEYWORDS = ("PASS", "COMPRESS", "CACHE", "MISS", "FEEDBACK")


@dataclass
class LogEntry:
    """Structured log entry for efficient processing."""
    timestamp: float
    level: str
    phase: str
    message: str
    data: Optional[Any] = None
    correlation_id: Optional[str] = None


def default_async_logging_config() -> Dict[str, Any]:
    return {
        "enabled": True,
        "log_level": "INFO",
        "max_queue_size": 0,  # Unlimited
        "batch_size": 50,
        "worker_timeout": 0.1,
        "performance_monitoring": {
            "enabled": True,
            "max_tracked_operations": 100
        }
    }


def load_async_logging_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load async logging configuration from the ``logging`` section of server.jsonc."""
    server_config_path = Path(config_path) if config_path else SERVER_CONFIG_PATH

    if server_config_path.exists():
        try:
            logging_section = load_jsonc(server_config_path).get("logging", {})
            async_setup_logger.debug(f"📋 Loading async logging config from: {server_config_path}")
            return {
                "enabled": logging_section.get("async_logging_enabled", True),
                "log_level": logging_section.get("log_level", "INFO"),
                "max_queue_size": logging_section.get("async_max_queue_size", 0),
                "batch_size": logging_section.get("async_batch_size", 50),
                "worker_timeout": logging_section.get("async_worker_timeout", 0.1),
                "performance_monitoring": {
                    "enabled": logging_section.get("async_performance_monitoring_enabled", True),
                    "max_tracked_operations": logging_section.get("async_max_tracked_operations", 100)
                }
            }
        except Exception as e:
            async_setup_logger.warning(f"⚠️ Failed to read logging config from {server_config_path}, using defaults: {e}")
    else:
        async_setup_logger.warning(f"⚠️ Server config not found: {server_config_path}")

    async_setup_logger.info("📋 Using default async logging configuration")
    return default_async_logging_config()


def apply_environment_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to the async logging config."""
    if os.environ.get("PITHY_GLOBAL_ASYNC_LOGGING"):
        config["enabled"] = os.environ["PITHY_GLOBAL_ASYNC_LOGGING"].lower() in ("true", "1", "yes")
        async_setup_logger.info(f"📋 Environment override: async_logging_enabled = {config['enabled']}")

    for env_name, key, cast in (("PITHY_ASYNC_QUEUE_SIZE", "max_queue_size", int),
                                ("PITHY_ASYNC_BATCH_SIZE", "batch_size", int),
                                ("PITHY_ASYNC_WORKER_TIMEOUT", "worker_timeout", float)):
        if os.environ.get(env_name):
            try:
                config[key] = cast(os.environ[env_name])
                async_setup_logger.info(f"📋 Environment override: {key} = {config[key]}")
            except ValueError:
                async_setup_logger.warning(f"⚠️ Invalid {env_name} value")

    return config


class AsyncLogHandler:
    """Non-blocking log queue with a batching background worker."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = apply_environment_overrides(load_async_logging_config())
        self.config = config

        # 0 means unlimited
        max_queue_size = self.config.get("max_queue_size", 0)
        self.log_queue = queue.Queue(maxsize=max_queue_size) if max_queue_size else queue.Queue()

        self.worker_thread = None
        self.running = False
        self.batch_size = self.config.get("batch_size", 50)
        self.worker_timeout = self.config.get("worker_timeout", 0.1)

        self.stats = {
            'messages_logged': 0,
            'messages_dropped': 0,
            'queue_size': 0,
            'batches_processed': 0,
        }

        perf_config = self.config.get("performance_monitoring", {})
        self.performance_monitoring = perf_config.get("enabled", True)
        self.max_tracked_operations = perf_config.get("max_tracked_operations", 100)
        self.operation_times: Dict[str, List[float]] = {}
        self.operation_counts: Dict[str, int] = {}

    def start(self):
        """Start background logging worker."""
        if self.running:
            return
        self.running = True
        self.worker_thread = threading.Thread(target=self._worker, daemon=True)
        self.worker_thread.start()

    def stop(self):
        """Stop background logging worker."""
        self.running = False
        if self.worker_thread:
            self.worker_thread.join(timeout=1.0)

    def log_async(self, phase: str, message: str, data: Optional[Any] = None,
                  level: str = "INFO", correlation_id: Optional[str] = None):
        """Queue a log entry without blocking."""
        entry = LogEntry(
            timestamp=time.time(),
            level=level,
            phase=phase,
            message=message,
            data=data,
            correlation_id=correlation_id
        )

        try:
            self.log_queue.put_nowait(entry)
            self.stats['messages_logged'] += 1
            if self.performance_monitoring:
                self._track_operation(phase, entry.timestamp)
        except queue.Full:
            self.stats['messages_dropped'] += 1
            if level in ['ERROR', 'CRITICAL']:
                print(f"DROPPED LOG: [{phase}] {message}", file=sys.stderr)

    def _track_operation(self, operation_name: str, timestamp: float):
        """Track timestamps of pipeline phases."""
        if not any(keyword in operation_name.upper() for keyword in TRACKED_PHASE_KEYWORDS):
            return

        self.operation_times.setdefault(operation_name, []).append(timestamp)
        self.operation_counts[operation_name] = self.operation_counts.get(operation_name, 0) + 1

        # Keep only recent measurements to limit memory
        if len(self.operation_times[operation_name]) > self.max_tracked_operations:
            self.operation_times[operation_name] = self.operation_times[operation_name][-self.max_tracked_operations // 2:]

    def _worker(self):
        """Background worker that drains the queue in batches."""
        batch: List[LogEntry] = []

        while self.running:
            try:
                batch_start_time = time.time()
                while len(batch) < self.batch_size and (time.time() - batch_start_time) < self.worker_timeout:
                    try:
                        batch.append(self.log_queue.get(timeout=min(0.01, self.worker_timeout / 10)))
                    except queue.Empty:
                        break

                if batch:
                    self.stats['batches_processed'] += 1
                    batch.clear()

                self.stats['queue_size'] = self.log_queue.qsize()

            except Exception as e:
                # stderr only, to avoid logging loops
                print(f"Async logger worker error: {e}", file=sys.stderr)
                batch.clear()

    def get_performance_stats(self) -> Dict[str, Any]:
        """Get per-phase frequency statistics."""
        if not self.performance_monitoring:
            return {"performance_monitoring": "disabled"}

        stats = {}
        for op_name, timestamps in self.operation_times.items():
            if len(timestamps) > 1:
                time_span = timestamps[-1] - timestamps[0]
                stats[op_name] = {
                    'count': self.operation_counts[op_name],
                    'frequency_per_sec': len(timestamps) / max(time_span, 1),
                    'recent_count': len(timestamps),
                    'time_span': time_span
                }
        return stats


class OptimizedPipelineLogger:
    """Phase logging for the compression pipeline."""

    def __init__(self, enable_verbose: bool = True, config: Optional[Dict[str, Any]] = None):
        self.enable_verbose = enable_verbose
        self.async_handler = AsyncLogHandler(config)
        self.correlation_counter = 0
        self.standard_logger = logging.getLogger('pithy.pipeline')

        if enable_verbose:
            self.async_handler.start()

    def log_phase(self, phase: str, message: str, data: Optional[Any] = None,
                  correlation_id: Optional[str] = None, level: str = "INFO"):
        """Log a pipeline phase (e.g. ``PASS_1``) through the async queue and standard logging."""
        if not self.enable_verbose:
            return

        if correlation_id is None:
            self.correlation_counter += 1
            correlation_id = f"async_{self.correlation_counter}"

        self.async_handler.log_async(
            phase=phase,
            message=message,
            data=data,
            correlation_id=correlation_id,
            level=level
        )

        self.standard_logger.log(getattr(logging, level.upper(), logging.INFO), message)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.async_handler.stats.copy()
        stats.update(self.async_handler.get_performance_stats())
        return stats

    def shutdown(self):
        if self.async_handler:
            self.async_handler.stop()


_optimized_logger = None


def get_optimized_logger(config: Optional[Dict[str, Any]] = None) -> OptimizedPipelineLogger:
    """Get singleton pipeline logger."""
    global _optimized_logger
    if _optimized_logger is None:
        if config is None:
            config = apply_environment_overrides(load_async_logging_config())

        verbose_enabled = config.get("enabled", True)
        # No background worker under test runs
        if '--no-verbose' in sys.argv or 'pytest' in sys.modules:
            verbose_enabled = False

        _optimized_logger = OptimizedPipelineLogger(enable_verbose=verbose_enabled, config=config)
    return _optimized_logger


class PerformanceMonitor:
    """Monitor timings of compression operations."""

    def __init__(self):
        self.operation_times: Dict[str, List[float]] = {}
        self.operation_counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def time_operation(self, operation_name: str):
        """Context manager for timing operations."""
        return self.OperationTimer(self, operation_name)

    class OperationTimer:
        def __init__(self, monitor, operation_name):
            self.monitor = monitor
            self.operation_name = operation_name
            self.start_time = None
            self.duration = 0.0

        def __enter__(self):
            self.start_time = time.perf_counter()
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if self.start_time:
                self.duration = time.perf_counter() - self.start_time
                self.monitor._record_time(self.operation_name, self.duration)

        @property
        def milliseconds(self) -> float:
            return self.duration * 1000

    def _record_time(self, operation_name: str, duration: float):
        with self._lock:
            self.operation_times.setdefault(operation_name, []).append(duration)
            self.operation_counts[operation_name] = self.operation_counts.get(operation_name, 0) + 1

            # Keep only recent measurements
            if len(self.operation_times[operation_name]) > 100:
                self.operation_times[operation_name] = self.operation_times[operation_name][-50:]

    def get_stats(self) -> Dict[str, Any]:
        stats = {}
        with self._lock:
            for op_name, times in self.operation_times.items():
                if times:
                    stats[op_name] = {
                        'count': self.operation_counts[op_name],
                        'avg_time': sum(times) / len(times),
                        'min_time': min(times),
                        'max_time': max(times),
                        'recent_avg': sum(times[-10:]) / min(len(times), 10)
                    }
        return stats


_performance_monitor = None


def get_performance_monitor() -> PerformanceMonitor:
    """Get singleton performance monitor."""
    global _performance_monitor
    if _performance_monitor is None:
        _performance_monitor = PerformanceMonitor()
    return _performance_monitor


class AsyncPythonLogHandler(logging.Handler):
    """Root-logger handler that feeds pipeline records into the async statistics."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.async_handler = AsyncLogHandler(config)
        self.async_handler.start()

    def emit(self, record):
        try:
            message = record.getMessage().upper()
        except Exception:
            return
        for keyword in TRACKED_PHASE_KEYWORDS:
            if keyword in message:
                self.async_handler._track_operation(f"{keyword}_{record.levelname}", record.created)
                break

    def close(self):
        if self.async_handler:
            self.async_handler.stop()
        super().close()


def setup_global_async_logging(config: Optional[Dict[str, Any]] = None) -> Optional[AsyncPythonLogHandler]:
    """
    Attach an ``AsyncPythonLogHandler`` to the root logger, alongside existing handlers.

    Args:
        config: Async logging configuration dict. If None, loads from config file.

    Returns:
        The installed handler, or None when async logging is disabled
    """
    if config is None:
        config = apply_environment_overrides(load_async_logging_config())

    if not config.get("enabled", True):
        return None

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, AsyncPythonLogHandler):
            async_setup_logger.info("   📝 Global async logging already enabled")
            return handler

    async_handler = AsyncPythonLogHandler(config)
    async_handler.setLevel(logging.DEBUG)
    root_logger.addHandler(async_handler)

    queue_size = config.get("max_queue_size", 0)
    queue_desc = "unlimited" if queue_size == 0 else f"{queue_size:,}"
    async_setup_logger.info(
        f"   📝 Async logging configured: {queue_desc} queue, batch={config.get('batch_size', 50)}, "
        f"timeout={config.get('worker_timeout', 0.1)}s"
    )
    return async_handler


def remove_global_async_logging():
    """Detach async handlers from the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, AsyncPythonLogHandler):
            root_logger.removeHandler(handler)
            handler.close()
