"""
Services Layer

Competition logic that:
- Plans brackets, fixtures, standings, playoffs and ratings as pure functions
- Applies plans through the TransactionCoordinator (read phase, then write phase)
- Does NOT depend on HTTP request/response objects
"""
