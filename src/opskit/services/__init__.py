"""Business-logic layer: filtering, aggregation and report rendering over client results.

- monitors.py (scope helpers, service / notification-group filters, text rendering)
- alert_stats.py (paginated alert fetch, window partition, MTTR / availability report)
- team_maintainer.py (team listing and maintainer assignment loop)
"""

# Import side-effects are intentionally avoided here; modules are imported by the CLIs as needed.
