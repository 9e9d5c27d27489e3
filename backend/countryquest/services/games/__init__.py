"""Game domain services: round timing, guess scoring and player actions.

Socket handlers call into ``GameCoordinator``; the scheduler and scorer
below it never touch the transport directly, only a ``Broadcaster``.
"""
