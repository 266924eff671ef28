"""
Courtside - Amateur Tournament Progression Engine

Runs club tournaments end to end: registered participants are seeded into
round-robin groups, group winners advance into a single-elimination bracket,
and ratings settle once per confirmed result.

Main components:
- grouping: Snake seeding into groups and knockout bracket skeletons
- standings: Group tables with the four-level tie-break
- bracket: Resolution of symbolic bracket slots from confirmed results
- progress: Per-participant progress, battle tables, pending pairings
- rating: Dynamic-K Elo settlement (singles and team)
- db: SQLAlchemy models and session management
- services: Glue between persisted rows and the pure engine
"""

__version__ = "1.0.0"
