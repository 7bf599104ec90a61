"""
Core Configuration Layer
========================

Modules:
    constants: Wire event names, error messages and pydantic-settings validation
"""
