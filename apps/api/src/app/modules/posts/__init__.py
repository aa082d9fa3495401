"""
Posts Module

Club updates published by club members.

API Endpoints: see router.py
"""

from .router import router

__all__ = ["router"]
