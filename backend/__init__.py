"""
Radar Backend - HTTP layer for the technology radar.

This package provides a FastAPI backend that reads the radar YAML data file
and serves it as JSON, as a computed layout and as server-rendered SVG/HTML.
"""
