"""
FundWatch — contribution alerting and recurring notification engine.

Monitors contribution activity against user-defined alert rules, dispatches
rendered messages to push / messaging / webhook / email channels, and keeps
recurring scheduled notifications registered with an external scheduler.
"""

__version__ = "1.0.0"
