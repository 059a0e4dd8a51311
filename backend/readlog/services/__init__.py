"""Application services: identity (credential store) and authentication."""
