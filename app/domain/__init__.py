"""
Domain layer containing core business logic and domain services.

Submodules:
- streams: Credential registry, persistence, publish authorization and expiry.
- utils: Domain-specific utilities (e.g., ID generation).
"""
