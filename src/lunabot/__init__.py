"""Luna Discord companion bot."""
