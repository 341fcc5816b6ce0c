"""
API server module for oracle status endpoints.

Provides HTTP endpoints for:
- /oracle/v0/health - Health check endpoint
- /oracle/v0/status - Oracle progress
- /metrics - Prometheus metrics
"""

from .server import ApiServer, ApiServerConfig, OracleStatus

__all__ = [
    "ApiServer",
    "ApiServerConfig",
    "OracleStatus",
]
