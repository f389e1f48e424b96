"""
Services module - Application business logic layer.

Modules:
- ingest: Decoders, source records and adapters into CanonicalActivity
- classifier: Workout-intent classification
- merge: File upload / polled API reconciliation
- analytics: Period windows, summaries, predictions and goal projection
- external: Strava client and credential providers
- store: Database access
- sync: Ingestion runs
"""
