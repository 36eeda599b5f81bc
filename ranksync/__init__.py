"""RankSync relay package.

To run the ingress API:
    from ranksync.flask_app import create_app

To embed the relay in a host process:
    from ranksync.bridge import RankSyncBridge

To call the remote service directly:
    from ranksync.core.relay import RelayClient, Payload, EventKind
"""
# Note: flask_app is not imported here so hosts and CLI scripts that embed
# the relay do not need Flask.
