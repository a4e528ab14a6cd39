"""
Scripts Package.

This package contains operational scripts for the requirements service.

Scripts:
- bootstrap_db: Database initialization
"""

# Scripts are meant to be run directly, not imported
