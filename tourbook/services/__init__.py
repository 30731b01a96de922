"""Service layer (token signing, payment checkout)."""
