"""
Congregation Planner

Weekend meeting planning for congregations: publishers, visiting speakers,
public talks, meeting programs and exceptions.
"""

__version__ = "0.1.0"
