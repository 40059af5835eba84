"""Game session engine.

Board rules, the session state machine, the registry that serialises
access to each session, and outcome settlement. Transport code (HTTP routes
and socket handlers) imports from here and never mutates sessions itself.
"""
