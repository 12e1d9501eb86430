"""
Services module for league business logic.

This module organizes services into:
- league: the statistics engine (event model, result applier, statistics
  maintenance, standings, match lifecycle, fair play)
"""
