"""Classmate invitations: the staged address list and batch send."""
