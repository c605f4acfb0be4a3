"""Queue-driven reconciliation with Dramatiq.

Actors live in :mod:`cmdbsync.queue.actor`; importing that module registers
them with the configured broker. Run a worker with::

    dramatiq cmdbsync.queue.actor
"""
