"""
Learning Analytics - stateless calculation core for learning dashboards.

Subpackages:
- core: mastery scoring, session and quiz records, date helpers
- study: forgetting-curve retention and streak tracking
- adaptive: rule-based recommendations and the analytics aggregate
- cli: `learning-analytics` command line over JSON files
"""

__version__ = "0.1.0"
