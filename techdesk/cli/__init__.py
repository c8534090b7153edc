"""
Command-line interface for techdesk.
"""
