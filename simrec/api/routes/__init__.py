"""Route modules for the SimRec API."""
