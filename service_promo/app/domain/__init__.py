"""
Domain package for the Promo Service.

- models: frozen entity snapshots and request payloads
- auth_middleware: bearer-token authentication with claim caching
"""
