"""Chart subpackage.

Builders for the Kubernetes objects of a release, the renderer that
assembles them, and the packaged values profiles.
"""

from geoserver_deploy.chart.render import dump_manifests, https_mode, render_release

__all__ = [
    "dump_manifests",
    "https_mode",
    "render_release",
]
