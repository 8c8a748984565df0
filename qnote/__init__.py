"""
Qnote.

- sync/: Offline-first note sync core (store, cache, engine, remote access)
- main.py: Session factory wiring the sync core from configuration
"""
