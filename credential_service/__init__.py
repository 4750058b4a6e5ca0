"""Account credential and session lifecycle service."""
