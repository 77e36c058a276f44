"""
ESG Pilotage Platform
HTTP blueprints: hierarchy, indicator values, consolidation, health.
"""
