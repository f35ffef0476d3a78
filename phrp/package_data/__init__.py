"""Package data for PHRP."""
