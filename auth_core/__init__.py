"""
Authentication core: token engine, session manager and orchestrator.

See auth_core.factory.build_auth_service for wiring.
"""
