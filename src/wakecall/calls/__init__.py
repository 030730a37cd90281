"""
Call management module.

NOTE: keep this package __init__ lightweight; importing ORM models here
triggers mapping at import time for every submodule.
"""

__all__: list[str] = []
