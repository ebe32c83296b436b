"""HTTP client module for kubeconnect.

:class:`SyncClient` is a blocking client backed by :class:`httpx.Client`,
built from resolved :class:`~kubeconnect.options.ConnectionOptions`.

Example::

    from kubeconnect.client import SyncClient

    with SyncClient(options) as client:
        resp = client.get("/version")
"""

from kubeconnect.client.sync_client import SyncClient

__all__ = ["SyncClient"]
