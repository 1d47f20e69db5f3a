"""VM inventory shaping and filtering."""
