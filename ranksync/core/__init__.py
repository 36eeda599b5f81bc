"""Core relay logic, independent of HTTP frameworks.

Module Structure:
    - relay/        : Thread-pooled client for the remote REST API
    - directory.py  : Directory snapshots and the in-memory mirror
    - events.py     : Host events and the local event bus
    - listeners.py  : Session and group-change listeners
    - linking.py    : link / unlink / status / reload commands

Usage Pattern:
    Import explicitly when needed:
        from ranksync.core.listeners import JoinListener, RoleChangeListener
        from ranksync.core.linking import RankSyncCommand
"""
