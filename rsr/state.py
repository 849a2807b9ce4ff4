from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Callable

from .address import ServerAddress, format_address


class ServerOrigin(str, Enum):
    SYSTEM = "system"  # learned from the external resolv.conf
    LINK = "link"
    FALLBACK = "fallback"


@dataclass(eq=False)
class ServerEntry:
    address: ServerAddress
    origin: ServerOrigin
    server_string: str = field(init=False)
    marked: bool = False

    def __post_init__(self) -> None:
        self.server_string = format_address(self.address)

    @property
    def identity(self) -> tuple:
        return self.address.identity


@dataclass(eq=False)
class SearchDomainEntry:
    name: str  # normalized
    marked: bool = False


class ResolverState:
    """Nameservers and search domains owned by the service.

    Not thread-safe by itself: callers that share one instance between
    threads hold ``lock`` around every access.
    """

    def __init__(
        self,
        read_resolv_conf: bool = True,
        on_cache_flush: Callable[[], None] | None = None,
        on_active_server_change: Callable[[ServerEntry | None], None] | None = None,
    ) -> None:
        self.lock = Lock()
        self.servers: list[ServerEntry] = []
        self.search_domains: list[SearchDomainEntry] = []
        self.resolv_conf_mtime: int | None = None  # ns
        self.read_resolv_conf = read_resolv_conf
        self.active_server: ServerEntry | None = None
        self.generation = 0  # bumped whenever servers or search domains change
        self.cache_flushes = 0
        self._on_cache_flush = on_cache_flush
        self._on_active_server_change = on_active_server_change

    # -- servers ---------------------------------------------------------

    def find_server(self, origin: ServerOrigin, address: ServerAddress) -> ServerEntry | None:
        for s in self.servers:
            if s.origin == origin and s.identity == address.identity:
                return s
        return None

    def add_server(self, origin: ServerOrigin, address: ServerAddress) -> ServerEntry:
        """Add a server, or re-confirm (unmark) it if already known for this origin."""
        existing = self.find_server(origin, address)
        if existing is not None:
            if existing.marked:
                # Confirmed during a pass: keep entries of this origin in confirmation order.
                existing.marked = False
                self._move_back(existing)
            return existing
        entry = ServerEntry(address=address, origin=origin)
        self.servers.insert(self._end_of_origin(origin), entry)
        self.generation += 1
        if self.active_server is None:
            self.set_active_server(entry)
        return entry

    def _end_of_origin(self, origin: ServerOrigin) -> int:
        """Index just behind the last entry of ``origin``, or the end of the list."""
        for i in range(len(self.servers) - 1, -1, -1):
            if self.servers[i].origin == origin:
                return i + 1
        return len(self.servers)

    def _move_back(self, entry: ServerEntry) -> None:
        idx = self.servers.index(entry)
        end = self._end_of_origin(entry.origin)
        if end - 1 > idx:
            self.servers.pop(idx)
            self.servers.insert(end - 1, entry)
            self.generation += 1

    def remove_server(self, entry: ServerEntry) -> None:
        self.servers.remove(entry)
        self.generation += 1
        self._fix_active_server()

    def mark_servers(self, origin: ServerOrigin) -> None:
        for s in self.servers:
            if s.origin == origin:
                s.marked = True

    def unlink_marked_servers(self, origin: ServerOrigin) -> int:
        keep = [s for s in self.servers if not (s.marked and s.origin == origin)]
        removed = len(self.servers) - len(keep)
        if removed:
            self.servers = keep
            self.generation += 1
            self._fix_active_server()
        return removed

    def unlink_servers(self, origin: ServerOrigin) -> int:
        self.mark_servers(origin)
        return self.unlink_marked_servers(origin)

    def set_active_server(self, entry: ServerEntry | None) -> None:
        if entry is self.active_server:
            return
        self.active_server = entry
        if self._on_active_server_change is not None:
            self._on_active_server_change(entry)

    def _fix_active_server(self) -> None:
        if self.active_server is not None and self.active_server not in self.servers:
            self.set_active_server(self.servers[0] if self.servers else None)

    # -- search domains --------------------------------------------------

    def find_search_domain(self, name: str) -> SearchDomainEntry | None:
        for d in self.search_domains:
            if d.name == name:
                return d
        return None

    def add_search_domain(self, name: str) -> SearchDomainEntry:
        existing = self.find_search_domain(name)
        if existing is not None:
            if existing.marked:
                existing.marked = False
                if self.search_domains[-1] is not existing:
                    self.search_domains.remove(existing)
                    self.search_domains.append(existing)
                    self.generation += 1
            return existing
        entry = SearchDomainEntry(name=name)
        self.search_domains.append(entry)
        self.generation += 1
        return entry

    def mark_search_domains(self) -> None:
        for d in self.search_domains:
            d.marked = True

    def unlink_marked_search_domains(self) -> int:
        keep = [d for d in self.search_domains if not d.marked]
        removed = len(self.search_domains) - len(keep)
        if removed:
            self.search_domains = keep
            self.generation += 1
        return removed

    def unlink_search_domains(self) -> int:
        self.mark_search_domains()
        return self.unlink_marked_search_domains()

    # -- collaborators ---------------------------------------------------

    def flush_cache(self) -> None:
        self.cache_flushes += 1
        if self._on_cache_flush is not None:
            self._on_cache_flush()
