"""Bingo domain services: cards, patterns, the room store and the room
state machine.

This package holds the game rules. Socket handlers and HTTP routes call
into it; it never emits to the transport itself.
"""
