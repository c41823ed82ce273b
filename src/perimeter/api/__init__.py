"""REST API for Perimeter."""
