"""Image Backends: concrete generation strategies (synchronous and poll-based).

Invariants:
    - Each backend owns one protocol and one RETRY_POLICIES entry
    - Backends never talk to storage; PreviewImageProvider persists their output
"""
