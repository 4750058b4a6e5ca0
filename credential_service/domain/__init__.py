"""Account aggregate, workflows and contracts."""
