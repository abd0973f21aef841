from rest_framework.throttling import UserRateThrottle


class BurstRateThrottle(UserRateThrottle):
    """
    Short-window limit (status buttons, location pings).
    """
    scope = 'burst'


class SustainedRateThrottle(UserRateThrottle):
    """
    General API usage.
    """
    scope = 'sustained'
