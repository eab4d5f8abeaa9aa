"""Infrastructure Layer: external service clients and cross-cutting concerns.

Invariants:
    - All external calls wrapped with retry/timeout/error mapping
    - Every backend failure leaves this layer as ProviderError or GenerationTimeoutError

Design Decisions:
    - Resilient wrappers over raw clients (ADR: ExMA single responsibility)
    - Image backends are strategies composed into one provider, never subclasses of it
"""
