"""Process-wide handle on the running simulation."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SimulationLoader:
    """Holds the currently running simulation and starts/stops runs.

    The loader is created once per process and handed to the services that
    need it. Start and stop run on a single worker thread, so they execute
    in submission order and never overlap.

    Example:
        loader = SimulationLoader(on_start=runtime.load, on_stop=runtime.unload)
        loader.start_async(simulation)
        loader.current_simulation  # simulation once loading has finished
    """

    def __init__(
        self,
        on_start: Optional[Callable] = None,
        on_stop: Optional[Callable] = None,
    ):
        """Initialize loader.

        Args:
            on_start: Called with the simulation before it becomes current
            on_stop: Called with the current simulation before it is cleared
        """
        self._on_start = on_start
        self._on_stop = on_stop
        self._lock = Lock()
        self._current = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="simulation-loader")

    @property
    def current_simulation(self):
        with self._lock:
            return self._current

    def _set_current(self, simulation):
        with self._lock:
            self._current = simulation

    def start_async(self, simulation) -> Future:
        """Start a simulation in the background.

        Args:
            simulation: Simulation record to run

        Returns:
            Future resolving once the simulation is current
        """
        logger.info("Starting simulation id=%s", simulation.id)
        return self._executor.submit(self._start, simulation)

    def stop_async(self) -> Future:
        """Stop the running simulation in the background.

        Returns:
            Future resolving once no simulation is current
        """
        logger.info("Stopping current simulation")
        return self._executor.submit(self._stop)

    def _start(self, simulation):
        try:
            if self._on_start is not None:
                self._on_start(simulation)
        except Exception:
            logger.exception("Failed to start simulation id=%s", simulation.id)
            raise
        self._set_current(simulation)
        logger.info("Simulation id=%s is running", simulation.id)

    def _stop(self):
        current = self.current_simulation
        if current is None:
            return
        try:
            if self._on_stop is not None:
                self._on_stop(current)
        except Exception:
            logger.exception("Failed to stop simulation id=%s", current.id)
            raise
        self._set_current(None)
        logger.info("Simulation id=%s stopped", current.id)

    def wait(self, timeout: Optional[float] = None):
        """Block until every start/stop submitted so far has finished.

        Args:
            timeout: Seconds to wait before raising TimeoutError
        """
        self._executor.submit(lambda: None).result(timeout=timeout)

    def shutdown(self, wait: bool = True):
        """Stop the worker thread."""
        self._executor.shutdown(wait=wait)
