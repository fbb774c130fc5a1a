"""Attribute path expansion.

Turns the short attribute path a user types (`hello`, or nothing at all) into
the fully qualified output paths each command looks up, in priority order.
"""
