"""Core domain package for scrapwatch.

Core contains the session state machine, change polling, and dispatch logic
without any Steam SDK or HTTP-specific code, keeping the business logic
portable.
"""
