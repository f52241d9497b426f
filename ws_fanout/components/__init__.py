"""
Fan-out service components.

- core/: constants and process-wide service handles
- registry/: connection registry contract and backends
- gateway/: push-to-connection clients
- events/: trigger variants and classification
- metrics/: counters and Prometheus export
"""
