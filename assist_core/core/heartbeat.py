"""
Heartbeat scheduler - runs registered periodic tasks on a background thread.

Used for the nightly pattern analysis job. Task failures are logged and
isolated; they never propagate into the thread that started the scheduler.
"""

import threading
import time
from typing import Callable, Dict, List, Optional

from ..util.logging import logger


class HeartbeatScheduler:
    """Cooperative interval scheduler (time.monotonic based)."""

    def __init__(self, tick_sec: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.tasks: Dict[str, Dict] = {}  # task_name -> {func, interval, last_run, failures}
        self.tick_sec = tick_sec
        self.clock = clock
        self.running = False
        self._shutdown_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None

    def register_task(self, name: str, interval_sec: int, func: Callable, run_immediately: bool = True):
        """
        Register a task to be executed periodically.

        Args:
            name: Unique task identifier
            interval_sec: How often to run this task in seconds
            func: Function to call
            run_immediately: Run on the first tick instead of after one interval
        """
        if not callable(func):
            raise ValueError(f"Task function must be callable: {func}")

        if interval_sec < 1:
            raise ValueError(f"Interval must be >= 1 second: {interval_sec}")

        self.tasks[name] = {
            "func": func,
            "interval": interval_sec,
            "last_run": None if run_immediately else self.clock(),
            "failures": 0
        }
        logger.log_operation("heartbeat.register", "success", {"task": name, "interval_sec": interval_sec})

    def unregister_task(self, name: str):
        """Remove a task from the registry."""
        if self.tasks.pop(name, None) is not None:
            logger.log_operation("heartbeat.unregister", "success", {"task": name})

    def list_tasks(self) -> List[str]:
        return list(self.tasks.keys())

    def should_run_task(self, name: str) -> bool:
        task_info = self.tasks[name]
        if task_info["last_run"] is None:
            return True

        return self.clock() - task_info["last_run"] >= task_info["interval"]

    def run_task(self, name: str) -> bool:
        """Execute a task now; returns False when it raised."""
        task_info = self.tasks[name]
        start_time = self.clock()
        try:
            task_info["func"]()
        except Exception as e:
            end_time = self.clock()
            task_info["last_run"] = end_time
            task_info["failures"] += 1
            logger.log_heartbeat_task(name, start_time, end_time, "failed", {"error": str(e)[:200]})
            return False

        end_time = self.clock()
        task_info["last_run"] = end_time
        logger.log_heartbeat_task(name, start_time, end_time, "success")
        return True

    def run_pending(self) -> int:
        """Run every due task once; returns how many ran."""
        ran = 0
        for name in list(self.tasks.keys()):
            if name in self.tasks and self.should_run_task(name):
                self.run_task(name)
                ran += 1
        return ran

    def start(self):
        """Start the loop on a daemon thread."""
        if self.running:
            raise RuntimeError("Heartbeat already running")

        self.running = True
        self._started_at = self.clock()
        self._shutdown_event = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="heartbeat", daemon=True)
        self._thread.start()
        logger.log_operation("heartbeat.start", "success", {"tasks": self.list_tasks()})

    def _loop(self):
        try:
            while self.running and not self._shutdown_event.is_set():
                self.run_pending()
                self._shutdown_event.wait(self.tick_sec)
        finally:
            self.running = False

    def stop(self, timeout: float = 5.0):
        """Stop the loop gracefully."""
        if not self.running:
            return

        self.running = False
        if self._shutdown_event:
            self._shutdown_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.log_operation("heartbeat.stop", "success", {"tasks": self.list_tasks()})

    def reset_task(self, name: str):
        """Force a task to run on the next tick."""
        if name in self.tasks:
            self.tasks[name]["last_run"] = None

    def get_status(self) -> Dict:
        """Return current scheduler status for monitoring."""
        return {
            "status": "running" if self.running else "stopped",
            "tasks": {
                name: {
                    "interval_sec": info["interval"],
                    "last_run": info["last_run"],
                    "next_run": info["last_run"] + info["interval"] if info["last_run"] is not None else None,
                    "failures": info["failures"]
                }
                for name, info in self.tasks.items()
            },
            "uptime_sec": self.clock() - self._started_at if self._started_at is not None and self.running else 0.0
        }
