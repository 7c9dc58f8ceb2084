"""
Identity and access provisioning for the Chart Breaker EHR back end.
"""
__version__ = "1.0.0"
