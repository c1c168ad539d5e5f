"""Preview generation and delivery."""
