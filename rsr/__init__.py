"""Resolver State Reconciler (RSR).

Keeps a service's list of DNS servers and search domains in sync with the
system resolv.conf:
 - picks up third party edits of the external file (mark and sweep)
 - ignores the external file when it is a symlink to our own copy
 - regenerates the managed copy atomically

The core functions take no locks; callers hold ``ResolverState.lock``.
"""
