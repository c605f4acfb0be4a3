"""Health probe resources for Kubernetes liveness and readiness checks.

Usage
-----
Import health resources for route registration::

    from cmdbsync.api.health.resources import HealthResource, ReadyResource
"""
