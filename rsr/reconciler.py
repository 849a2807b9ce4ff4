from __future__ import annotations

import os
import time
from threading import Thread

from . import db
from .address import parse_address
from .resolv_conf import ResolvConfError, read_resolv_conf, write_resolv_conf
from .settings import settings
from .state import ResolverState, ServerOrigin


class Reconciler:
    """Keeps the managed resolv.conf in sync with the resolver state.

    Every tick picks up edits of the external resolv.conf and rewrites the
    managed copy when the server or search domain lists changed since the
    last successful write.
    """

    def __init__(
        self,
        state: ResolverState,
        resolv_conf_path: str | None = None,
        managed_path: str | None = None,
    ):
        self.state = state
        self.resolv_conf_path = resolv_conf_path or settings.resolv_conf_path
        self.managed_path = managed_path or settings.managed_resolv_conf_path
        self._written_generation: int | None = None
        self._stop = False
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop = False
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop = True

    def _loop(self) -> None:
        db.log_event("INFO", "Reconciler started")
        while not self._stop:
            try:
                self.tick()
            except Exception as e:
                db.log_event("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            time.sleep(max(1, settings.poll_interval_s))

    def tick(self) -> None:
        with self.state.lock:
            try:
                read_resolv_conf(self.state, path=self.resolv_conf_path, managed_path=self.managed_path)
            except ResolvConfError:
                # Already logged; the system servers were dropped, so the write below still happens.
                pass
            # Also rewrite a managed copy that was removed behind our back.
            if self.state.generation != self._written_generation or not os.path.exists(self.managed_path):
                self._write_locked()

    def reload(self) -> bool:
        with self.state.lock:
            return read_resolv_conf(self.state, path=self.resolv_conf_path, managed_path=self.managed_path)

    def write(self) -> None:
        with self.state.lock:
            self._write_locked()

    def _write_locked(self) -> None:
        write_resolv_conf(self.state, path=self.resolv_conf_path, managed_path=self.managed_path)
        self._written_generation = self.state.generation

    def load_fallback(self, servers: str | None = None) -> int:
        """Add the whitespace separated fallback servers; returns how many were valid."""
        raw = settings.fallback_dns if servers is None else servers
        added = 0
        with self.state.lock:
            for token in raw.split():
                try:
                    self.state.add_server(ServerOrigin.FALLBACK, parse_address(token))
                    added += 1
                except ValueError as e:
                    db.log_event("WARN", f"Ignoring invalid fallback DNS server '{token}': {e}")
        return added
