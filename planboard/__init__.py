# Planboard: project task board client with optimistic sync and per-task assistant chats
#
# Components:
#   schema.py       - Data model (Project, Task, ChatMessage, TimelineUpdate, drop targets)
#   observable.py   - Value holder with subscribe/notify
#   events.py       - Event bus for presentation-facing notifications
#   store.py        - Entity store for the loaded project
#   client.py       - Remote service contract and HTTP client
#   board.py        - Board synchronization engine (optimistic moves + reload)
#   conversation.py - Per-task assistant conversation sessions
#   catalog.py      - Project list with create / delete
#   config.py       - YAML + environment configuration, logging setup
#   app.py          - Dashboard composition root
#   cli.py          - Command-line front end

__version__ = "0.1.0"
