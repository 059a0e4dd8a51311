"""Authentication orchestrator: register, login, refresh rotation and revocation."""
