"""HTTP API adapters.

- receiver: routes requests to core ports and maps errors to responses
- http_server: threaded http.server front end bridging to the event loop
"""
