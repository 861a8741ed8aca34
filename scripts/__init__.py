"""
Command-line scripts for the directory import planner.

- plan_import: analyze a CSV export against the directory and write the plan
"""

__version__ = "0.1.0"
