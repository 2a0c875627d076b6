"""Dispatch application for the ambulance backend.

This package contains the models, the dispatch engine (``services``),
serializers, views, route registrations and the WebSocket consumer that
carry an emergency from the requester's call to the driver's drop-off.
"""
