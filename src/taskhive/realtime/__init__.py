"""Realtime synchronization: project rooms over WebSocket.

Mutation services publish typed events through the Broadcaster after their
database write commits; the Broadcaster fans them out to every connection
the ConnectionGateway has placed in the project's room. The channel is a
best-effort supplement to the HTTP responses, which stay authoritative.
"""
