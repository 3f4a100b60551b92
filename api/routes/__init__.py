"""Route handlers following Single Responsibility Principle

Each router module handles a single resource/concept:
- health: unauthenticated liveness/health
- retrieval: suggestions, context packs, previews, index state, scopes
- backfill: backfill job control
- files: task input/output files
"""
