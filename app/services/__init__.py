"""
Services module for the league engines.

This module organizes services into:
- league: Stat aggregation, leaderboards, standings, fixtures and prizes
"""
