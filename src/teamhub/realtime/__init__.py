"""Real-time chat — transport collaborator, credential handshake, channel gateway."""
