"""
API routes for the league service.

This module organizes routes into:
- matches: Event entry, stat recomputation, score and rating updates
- players: Per-player career stats
- stats: Leaderboards, public stats overview and dashboard
- tournaments: Standings, fixtures, player stats and prizes
"""
