"""Food log service: meal text to deduplicated dishes annotated with food-sensitivity triggers."""
