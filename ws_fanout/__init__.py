"""
Realtime broadcast fan-out service.

Keeps a registry of live push connections and delivers every inbound
stream event to each of them, pruning connections the gateway reports gone.
"""

__version__ = "0.1.0"
