"""Taskhive: collaborative project and task board.

Users create or join projects through invite codes and work on a shared
task board with comments and attachments. Every client viewing a project
receives live updates through the project's realtime room.
"""

__version__ = "0.1.0"
