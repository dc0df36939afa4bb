"""
Firetrack - Source Package

A personal expense tracker: one form to register or sign in, a
category tree to book expenses against, and an audit trail of both.

DESIGN PRINCIPLES:
1. An already registered email is a sign in, never an error
2. Fail early, fail visibly
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Firetrack Team"
