"""Real-time infrastructure — in-process WebSocket fan-out.

Learn: Events flow in one direction:
1. A REST handler commits its change, then calls Broadcaster.broadcast()
2. The broadcaster writes {type, data} to every open /ws socket

There is no topic routing, no replay and no delivery confirmation. Clients
treat any event as a hint to refetch the authoritative list.
"""
