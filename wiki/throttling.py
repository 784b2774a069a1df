"""
Custom throttling classes for the wiki API.
"""

from rest_framework.throttling import AnonRateThrottle


class UnlockThrottle(AnonRateThrottle):
    """
    Limit password attempts against the access gate.
    5 requests per minute per IP.
    """

    rate = "5/min"
    scope = "unlock"


class MonitoringThrottle(AnonRateThrottle):
    """
    Rate limit for the health check.
    60 requests per minute per IP.
    """

    rate = "60/min"
    scope = "monitoring"
