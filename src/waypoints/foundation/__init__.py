"""Foundation utilities for shared infrastructure components.

This package provides shared utilities including:
- Structured JSON logging
- Circuit breaker and retry helpers for network adapters
- Async rate limiting
- Schedulers and the trailing-edge throttle used by the tracker
"""
