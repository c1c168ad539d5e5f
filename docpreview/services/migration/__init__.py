"""Legacy docstore migrations."""
