"""Session coordination services.

Store access, code allocation, player lifecycle, connection auth, room
broadcast and idle expiry. Transport concerns (HTTP routes and socket
handlers) import from here and stay out of it.
"""
