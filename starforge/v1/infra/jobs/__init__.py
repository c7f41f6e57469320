"""
Background job queue.

This package provides a database-backed job queue with:
- Atomic claims (FOR UPDATE SKIP LOCKED) safe across worker processes
- Registry-based pluggable handlers
- A sequential polling worker with backoff and graceful shutdown
- Optional resubmission of failed jobs up to max_attempts
"""
