"""HTTP API for DentalDesk."""
