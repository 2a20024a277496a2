"""
Gateway compliance persistence layer.

- persistence: entity records, field mapping, migrations and the driver
- api: HTTP endpoint writing allow-access records
"""

from .config import __version__

__all__ = ["__version__"]
