"""
Version 1 of the Only2U API.

Breaking changes should be introduced in a new version subpackage
(e.g. ``v2``) so existing mobile app releases keep working.
"""
