"""
Pydantic schema definitions for API payloads.

Each domain (auth, reviews, coupons, payments, etc.) defines its own
Pydantic models for request and response bodies.  Schemas are kept
separate from the SQL rows so the API representation can evolve
independently of persistence.
"""
