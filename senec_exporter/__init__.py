"""SENEC Prometheus Exporter package.

Polls a SENEC home energy storage appliance over its local HTTP/JSON
interface, decodes its hex-tagged values and exposes them as Prometheus gauges.
"""

__version__ = "0.1.0"
