"""Flake reference parsing.

Splits `<locator>[#<attr-path>]` into a typed locator and an attribute path,
and renders them back to a string that re-parses to the same values.
"""
