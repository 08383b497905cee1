"""
Tests package for the Auth0 operator.

Contains:
- unit/: Unit tests for individual components
"""
