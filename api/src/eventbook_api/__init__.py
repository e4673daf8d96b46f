"""HTTP API for event package bookings."""
