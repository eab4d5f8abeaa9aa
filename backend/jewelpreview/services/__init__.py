"""Services Layer: job submission, worker loops, reaper, and upgrade analysis.

Invariants:
    - Services own transactions; routes and loops only hand them sessions
    - Worker and reaper never raise out of a tick for per-job failures

Design Decisions:
    - Read queries shared in job_queries.py so every caller filters by kind the same way
"""
