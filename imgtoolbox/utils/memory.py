import psutil
import logging


def current_memory_mb() -> float:
    """Resident memory of this process in MB."""
    return psutil.Process().memory_info().rss / 1024 / 1024


def log_memory_usage():
    """Log current memory usage."""
    logging.info(f"Memory usage: {current_memory_mb():.2f} MB")
