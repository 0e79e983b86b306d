"""Version 1 of the DentalDesk REST API."""
