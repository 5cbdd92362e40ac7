"""Memory records: two-phase submission, timeline queries, comments, reactions."""
