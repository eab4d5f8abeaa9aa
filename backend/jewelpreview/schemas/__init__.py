"""Pydantic Schemas: request/response validation for API endpoints and vision output.

Invariants:
    - Schemas validate at system boundary (user input, API responses, model output)
    - Kinds are accepted as plain strings and checked by the submission service,
      so an unknown kind maps to VALIDATION_ERROR with the allowed values

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence (ADR: DDD boundary)
"""
