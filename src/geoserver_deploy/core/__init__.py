"""Core infrastructure subpackage.

This package contains the cluster and host management utilities. The
release facade lives in ``geoserver_deploy.core.release``.
"""

from geoserver_deploy.core.cluster import Cluster
from geoserver_deploy.core.host import Host

__all__ = [
    "Cluster",
    "Host",
]
