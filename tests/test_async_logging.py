"""
Test suite for the async logging system.
"""

import time
import threading
import sys
import os
import logging

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.async_logger import (
    AsyncPythonLogHandler,
    OptimizedPipelineLogger,
    PerformanceMonitor,
    apply_environment_overrides,
    default_async_logging_config,
    get_optimized_logger,
    load_async_logging_config,
    setup_global_async_logging,
    remove_global_async_logging
)


def make_logger():
    return OptimizedPipelineLogger(enable_verbose=True, config=default_async_logging_config())


def test_basic_async_logging():
    """Test basic phase logging."""
    print("🧪 Testing basic async logging...")

    logger = make_logger()
    try:
        logger.log_phase("PASS_1", "Pass 1: 2 phrase rules applied")
        logger.log_phase("PASS_2", "Pass 2: 1 word rules applied", {"rules": 1})
        logger.log_phase("CACHE_HIT", "Cache hit for 42 chars", level="DEBUG")

        time.sleep(0.3)

        stats = logger.get_stats()
        assert stats['messages_logged'] == 3
        assert stats['messages_dropped'] == 0
        print(f"   ✅ Logged {stats['messages_logged']} messages")
        print(f"   📊 Queue size: {stats['queue_size']}")
    finally:
        logger.shutdown()


def test_disabled_logger_is_silent():
    logger = OptimizedPipelineLogger(enable_verbose=False, config=default_async_logging_config())
    logger.log_phase("PASS_0", "ignored")
    assert logger.get_stats()['messages_logged'] == 0


def test_logger_singleton_under_pytest():
    assert get_optimized_logger() is get_optimized_logger()
    assert get_optimized_logger().enable_verbose is False


def test_performance_monitoring():
    """Test performance monitoring functionality."""
    print("🧪 Testing performance monitoring...")

    monitor = PerformanceMonitor()

    with monitor.time_operation("pass1"):
        time.sleep(0.02)

    for i in range(3):
        with monitor.time_operation("pass2") as timer:
            time.sleep(0.01)
        assert timer.milliseconds > 0

    perf_stats = monitor.get_stats()
    assert perf_stats["pass1"]["count"] == 1
    assert perf_stats["pass2"]["count"] == 3
    assert perf_stats["pass2"]["min_time"] <= perf_stats["pass2"]["max_time"]

    print("   📈 Performance Statistics:")
    for op_name, stats in perf_stats.items():
        print(f"      {op_name}: count={stats['count']} avg={stats['avg_time']*1000:.2f}ms")


def test_concurrent_logging():
    """Test concurrent logging from multiple threads."""
    print("🧪 Testing concurrent logging...")

    logger = make_logger()
    thread_count = 5
    messages_per_thread = 100

    def worker_thread(thread_id):
        for i in range(messages_per_thread):
            logger.log_phase("COMPRESS", f"Thread {thread_id} compression {i+1}", level="DEBUG")

    try:
        threads = [threading.Thread(target=worker_thread, args=(t,)) for t in range(thread_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        time.sleep(0.3)
        stats = logger.get_stats()
        assert stats["messages_logged"] > 0
        assert stats["messages_dropped"] == 0
        assert "COMPRESS" in stats
        print(f"   📨 Messages processed: {stats['messages_logged']}")
    finally:
        logger.shutdown()


def test_config_loading(tmp_path, monkeypatch):
    config_file = tmp_path / "server.jsonc"
    config_file.write_text("""
    {
        // logging only
        "logging": {"async_logging_enabled": false, "async_batch_size": 10,}
    }
    """)
    config = load_async_logging_config(config_file)
    assert config["enabled"] is False
    assert config["batch_size"] == 10
    assert config["worker_timeout"] == 0.1

    assert load_async_logging_config(tmp_path / "missing.jsonc") == default_async_logging_config()

    monkeypatch.setenv("PITHY_GLOBAL_ASYNC_LOGGING", "true")
    monkeypatch.setenv("PITHY_ASYNC_BATCH_SIZE", "25")
    monkeypatch.setenv("PITHY_ASYNC_WORKER_TIMEOUT", "soon")
    overridden = apply_environment_overrides(config)
    assert overridden["enabled"] is True
    assert overridden["batch_size"] == 25
    assert overridden["worker_timeout"] == 0.1


def test_global_async_logging():
    """Test global async logging for all Python logging calls."""
    print("🧪 Testing global async logging...")

    config = default_async_logging_config()
    assert setup_global_async_logging(dict(config, enabled=False)) is None

    async_handler = setup_global_async_logging(config)
    try:
        assert isinstance(async_handler, AsyncPythonLogHandler)
        assert setup_global_async_logging(config) is async_handler

        test_logger = logging.getLogger("pithy.test_global_async")
        test_logger.setLevel(logging.INFO)
        test_logger.info("Compress request finished")
        test_logger.info("Unrelated message")

        counts = async_handler.async_handler.operation_counts
        assert counts.get("COMPRESS_INFO") == 1
        assert len(counts) == 1
        print("   ✅ Global async logging active")
    finally:
        remove_global_async_logging()
        print("   🧹 Global async logging cleaned up")

    assert not any(isinstance(h, AsyncPythonLogHandler) for h in logging.getLogger().handlers)
