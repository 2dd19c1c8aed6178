"""Keeps the in-memory policy set in sync with the policy file.

Reload protocol:
  1. A check runs at most once per reload_interval.
  2. The file is reloaded only if it was modified after the last successful
     load AND has been left alone for RELOAD_WAIT seconds, so a file that is
     still being written is not picked up.
  3. The replacement PolicySet is built and validated off to the side, then
     published with a single reference assignment under the state lock.
  4. A failed reload keeps the previous set; only the first failure of a
     streak is logged.

Readers call get_all_policies() from any thread and always get a complete
generation, either the old one or the new one. They only contend for the
state lock, never for the duration of a parse.
"""

import logging
import os
import threading
import time

from hightide.config.settings import RELOAD_INTERVAL, RESCAN_INTERVAL
from hightide.policy.errors import ConfigError, ConfigNotFoundError
from hightide.policy.loader import load_policies

logger = logging.getLogger(__name__)

# Seconds the policy file must stay unmodified before it is trusted to be complete.
RELOAD_WAIT = 5.0

THREAD_NAME = "hightide config reload thread"

__all__ = ["ConfigManager", "RELOAD_INTERVAL", "RELOAD_WAIT", "RESCAN_INTERVAL", "THREAD_NAME"]


class ConfigManager:
    """Owns the published PolicySet and the background reload thread.

    The initial load happens in the constructor; if it fails the exception
    propagates and there is no manager.
    """

    def __init__(self, settings, clock=time.time, log=None):
        self.log = log or logger
        self.clock = clock
        self.config_file = settings.config_file
        self.reload_enabled = settings.reload_enabled
        self.reload_interval = settings.reload_interval
        self.rescan_interval = settings.rescan_interval
        self.settle_window = RELOAD_WAIT
        self.xinclude = settings.xinclude

        if not self.config_file:
            msg = ("No hightide.config.file given in settings - "
                   "the hightide service cannot run. Aborting....")
            self.log.warning(msg)
            raise ConfigNotFoundError(msg)

        self._lock = threading.Lock()          # bookkeeping + published reference
        self._reload_lock = threading.Lock()   # one reload check at a time
        self._stop = threading.Event()
        self._thread = None
        self._generation = 0

        self._policies = self._publish(self._load())
        now = self.clock()
        self.last_success_time = now
        self.last_attempt_time = now
        self.last_attempt_failed = False
        self.running = True

    def __enter__(self):
        self.start_reload()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop_reload()
        return False

    # ── Loading ──────────────────────────────────────────────────────────

    def _load(self):
        return load_policies(self.config_file, xinclude=self.xinclude)

    def _publish(self, policy_set):
        self._generation += 1
        return policy_set.with_generation(self._generation)

    def get_all_policies(self):
        """Return the currently published PolicySet. Do not mutate it."""
        with self._lock:
            return self._policies

    def reload_configs_if_necessary(self) -> bool:
        """Reload the policy file if it changed and has settled. Returns True if reloaded."""
        return self.maybe_reload(self.clock())

    def maybe_reload(self, now: float) -> bool:
        """Run one reload check at time ``now`` (seconds). Returns True if a new set was published."""
        with self._reload_lock:
            with self._lock:
                if not self.running:
                    return False
                if now <= self.last_attempt_time + self.reload_interval:
                    return False
                self.last_attempt_time = now
                last_success = self.last_success_time

            try:
                modified = os.path.getmtime(self.config_file)
                if modified <= last_success or now <= modified + self.settle_window:
                    return False
                candidate = self._load()
            except (ConfigError, OSError) as e:
                with self._lock:
                    first_failure = not self.last_attempt_failed
                    self.last_attempt_failed = True
                if first_failure:
                    self.log.error(
                        "Failed to reload config file %s - will use existing configuration: %s",
                        self.config_file, e, exc_info=True,
                    )
                return False

            with self._lock:
                if not self.running:
                    return False
                recovered = self.last_attempt_failed
                self._policies = self._publish(candidate)
                self.last_success_time = now
                self.last_attempt_failed = False
                generation = self._generation

            if recovered:
                self.log.info("Config file %s loaded again after earlier failures", self.config_file)
            self.log.info("Reloaded %d policies from %s (generation %d)",
                          len(candidate), self.config_file, generation)
            return True

    # ── Background thread ────────────────────────────────────────────────

    def start_reload(self):
        """Start the background reload thread if reloading is enabled.

        On-demand reloads are re-armed after stop_reload() either way.
        """
        with self._lock:
            self.running = True
        if not self.reload_enabled:
            self.log.info("Config reload disabled; %s will not be re-read", self.config_file)
            return
        if self.is_reloading():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=THREAD_NAME, daemon=True)
        self._thread.start()
        self.log.info("Started config reload thread (interval %.1fs)", self.reload_interval)

    def stop_reload(self):
        """Stop the background thread and wait for it to exit.

        Once this returns no reload will run or publish.
        """
        with self._lock:
            self.running = False
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join()
            self.log.info("Stopped config reload thread")

    def _run(self):
        while self.running:
            if self._stop.wait(self.reload_interval):
                break
            try:
                self.reload_configs_if_necessary()
            except Exception:
                self.log.exception("Failed to reload config file %s", self.config_file)

    def is_reloading(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def status(self) -> dict:
        with self._lock:
            return {
                "config_file": self.config_file,
                "generation": self._policies.generation,
                "policy_count": len(self._policies),
                "reload_enabled": self.reload_enabled,
                "reload_interval": self.reload_interval,
                "settle_window": self.settle_window,
                "rescan_interval": self.rescan_interval,
                "last_attempt_time": self.last_attempt_time,
                "last_success_time": self.last_success_time,
                "last_attempt_failed": self.last_attempt_failed,
                "running": self.running,
                "reloading": self.is_reloading(),
            }
