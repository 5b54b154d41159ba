"""Game domain services: RPS resolution, authorization, room registry and
action dispatch.

Socket handlers and HTTP routes import from here; nothing in this package
knows about Flask or Socket.IO.
"""
