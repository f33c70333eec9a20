"""
awarekv.monitoring - Health Checks
====================================

    - health:  HealthMonitor, determine_overall_status(), format_uptime()
"""

from awarekv.monitoring.health import HealthMonitor, determine_overall_status, format_uptime

__all__ = [
    "HealthMonitor",
    "determine_overall_status",
    "format_uptime",
]
