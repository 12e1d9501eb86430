"""
API routes for the league statistics engine.

This module organizes routes into:
- matches: apply/revert, live control, scores, results, reset, postpone, cancel, delete
- teams: drift repair and fair-play summaries
- players: player statistics rebuild and conservation checks
- seasons: season-wide rebuilds and the match-duration migration
- standings: ranked league table
- fair_play: disciplinary records and appeals
"""
