"""
Floor operations REST API.

Tables, order sessions and kitchen dispatch for restaurant floor terminals.
"""
