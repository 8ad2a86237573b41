"""
HTTP boundary: auth, dependency wiring and routes.
"""
