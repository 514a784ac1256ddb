# =============================================================================
# Granule Ledger Shared Libraries
# =============================================================================
# This package contains the shared libraries for the Granule Ledger.
# See individual sub-packages for detailed documentation.
# =============================================================================

"""
Granule ledger shared libraries.

Sub-packages:
- models: Pydantic data models and settings
- db: Relational schema, association resolver and transactional writer
- relocation: Granule file relocation engine
"""

__version__ = "0.1.0"
