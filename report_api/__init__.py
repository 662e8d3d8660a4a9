"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                      📡 Report API - City Insights                            ║
╚══════════════════════════════════════════════════════════════════════════════╝

Superficie HTTP del Analytics Core.
"""

from .api import create_app

__all__ = ["create_app"]
