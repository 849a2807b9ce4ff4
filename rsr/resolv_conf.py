"""Reading the system resolv.conf and writing our own managed copy.

``read_resolv_conf`` merges the nameservers and search domains of the
external file into a ResolverState using mark-and-sweep. ``write_resolv_conf``
renders the state into the managed copy, atomically.
"""
from __future__ import annotations

import os
import tempfile

from .address import parse_address
from .db import log_event
from .domains import normalize_domain
from .settings import settings
from .state import ResolverState, SearchDomainEntry, ServerEntry, ServerOrigin

# glibc <resolv.h>
MAXNS = 3
MAXDNSRCH = 6
MAX_SEARCH_LENGTH = 256

HEADER = (
    "# This file is managed by rsr (Resolver State Reconciler). Do not edit.\n"
    "#\n"
    "# Third party programs must not access this file directly, but\n"
    "# only through the symlink at {symlink}. To manage\n"
    "# resolv.conf(5) in a different way, replace the symlink by a\n"
    "# static file or a different symlink.\n"
    "\n"
)
NO_SERVERS = "# No DNS servers known.\n"
TOO_MANY_SERVERS = "# Too many DNS servers configured, the following entries may be ignored.\n"
TOO_MANY_DOMAINS = "# Too many search domains configured, remaining ones ignored.\n"
DOMAINS_TOO_LONG = "# Total length of all search domains is too long, remaining ones ignored.\n"


class ResolvConfError(Exception):
    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class ResolvConfWriteError(ResolvConfError):
    pass


def _clear_system_config(state: ResolverState) -> None:
    state.unlink_servers(ServerOrigin.SYSTEM)
    state.unlink_search_domains()


def _fail(state: ResolverState, path: str, what: str, exc: OSError) -> ResolvConfError:
    message = f"Failed to {what} {path}: {exc}"
    log_event("WARN", message, path=path)
    _clear_system_config(state)
    return ResolvConfError(message, path)


def _parse_line(state: ResolverState, line: str, path: str) -> None:
    words = line.split()
    keyword, args = words[0], words[1:]

    if keyword == "nameserver":
        # Only the first argument counts; resolv.conf allows a single address per line.
        raw = args[0] if args else ""
        try:
            state.add_server(ServerOrigin.SYSTEM, parse_address(raw))
        except ValueError as e:
            log_event("WARN", f"Failed to parse DNS server address '{raw}', ignoring: {e}", path=path)
        return

    # "domain" and "search" lines are treated as equivalent.
    if keyword in ("domain", "search"):
        if not args:
            log_event("WARN", f"Empty '{keyword}' line, ignoring.", path=path)
        for token in args:
            try:
                state.add_search_domain(normalize_domain(token))
            except ValueError as e:
                log_event("WARN", f"Failed to parse search domain '{token}', ignoring: {e}", path=path)


def read_resolv_conf(state: ResolverState, path: str | None = None, managed_path: str | None = None) -> bool:
    """Merge the external resolv.conf into ``state``.

    Returns True if the file was ingested, False if there was nothing to do
    (ingestion disabled, file absent, unchanged, or a symlink to our own copy).
    Raises ResolvConfError if the file exists but cannot be read; all system
    servers and search domains are dropped in that case.
    """
    if not state.read_resolv_conf:
        return False

    path = path or settings.resolv_conf_path
    managed_path = managed_path or settings.managed_resolv_conf_path

    try:
        st = os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise _fail(state, path, "stat", e) from e

    if st.st_mtime_ns == state.resolv_conf_mtime:
        return False

    # Symlinked to our own file? Then there is nothing to learn from it.
    try:
        own = os.stat(managed_path)
    except OSError:
        own = None
    if own is not None and (st.st_dev, st.st_ino) == (own.st_dev, own.st_ino):
        return False

    # Only the file I/O is guarded; errors from the journal or hooks are not read errors.
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            st = os.fstat(f.fileno())
            lines = f.readlines()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise _fail(state, path, "read", e) from e

    state.mark_servers(ServerOrigin.SYSTEM)
    state.mark_search_domains()

    for raw_line in lines:
        line = raw_line.strip()
        if not line or line[0] in "#;":
            continue
        _parse_line(state, line, path)

    state.resolv_conf_mtime = st.st_mtime_ns

    # Drop whatever did not show up in the new file.
    state.unlink_marked_servers(ServerOrigin.SYSTEM)
    state.unlink_marked_search_domains()

    # Whenever resolv.conf changes, start over with its first server.
    state.set_active_server(state.servers[0] if state.servers else None)

    # Flushed on every ingestion, even if the content is identical.
    state.flush_cache()

    log_event(
        "INFO",
        f"Read {len(state.servers)} server(s) and {len(state.search_domains)} search domain(s).",
        path=path,
    )
    return True


def compile_dns_servers(state: ResolverState) -> list[ServerEntry]:
    """All servers across origins, first-seen order, one per address."""
    seen: dict[tuple, ServerEntry] = {}
    for s in state.servers:
        seen.setdefault(s.identity, s)
    return list(seen.values())


def compile_search_domains(state: ResolverState) -> list[SearchDomainEntry]:
    seen: dict[str, SearchDomainEntry] = {}
    for d in state.search_domains:
        seen.setdefault(d.name, d)
    return list(seen.values())


def render_resolv_conf(
    servers: list[ServerEntry],
    domains: list[SearchDomainEntry],
    symlink_path: str | None = None,
) -> str:
    out = [HEADER.format(symlink=symlink_path or settings.resolv_conf_path)]

    if not servers:
        out.append(NO_SERVERS)
    for count, s in enumerate(servers):
        # Advisory only: the resolver library enforces MAXNS itself.
        if count == MAXNS:
            out.append(TOO_MANY_SERVERS)
        out.append(f"nameserver {s.server_string}\n")

    if domains:
        names: list[str] = []
        length = 0
        note = None
        for d in domains:
            if len(names) >= MAXDNSRCH:
                note = TOO_MANY_DOMAINS
                break
            if length + len(d.name) > MAX_SEARCH_LENGTH:
                note = DOMAINS_TOO_LONG
                break
            names.append(d.name)
            length += len(d.name)
        if names:
            out.append("search " + " ".join(names) + "\n")
        if note:
            out.append(note)

    return "".join(out)


def _unlink_quietly(path: str | None) -> None:
    if not path:
        return
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log_event("WARN", f"Failed to remove {path}: {e}", path=path)


def write_resolv_conf(state: ResolverState, path: str | None = None, managed_path: str | None = None) -> None:
    """Regenerate the managed resolv.conf from ``state``.

    The external file is read first so the output reflects its latest edits.
    On any failure the managed copy is removed rather than left half written.
    """
    path = path or settings.resolv_conf_path
    managed_path = managed_path or settings.managed_resolv_conf_path

    try:
        read_resolv_conf(state, path=path, managed_path=managed_path)
    except ResolvConfError as e:
        log_event("WARN", f"Continuing without system resolv.conf: {e}", path=path)

    content = render_resolv_conf(compile_dns_servers(state), compile_search_domains(state), symlink_path=path)

    directory = os.path.dirname(os.path.abspath(managed_path))
    temp_path: str | None = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(prefix=".#" + os.path.basename(managed_path), dir=directory)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.fchmod(f.fileno(), 0o644)
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, managed_path)
    except OSError as e:
        _unlink_quietly(managed_path)
        _unlink_quietly(temp_path)
        message = f"Failed to write {managed_path}: {e}"
        log_event("ERROR", message, path=managed_path)
        raise ResolvConfWriteError(message, managed_path) from e

    log_event("INFO", f"Wrote {managed_path}.", path=managed_path)
