"""Event ingestion resources.

Usage
-----
Import the resources for route registration::

    from cmdbsync.api.events.resources import BatchEventResource, EventResource
"""
