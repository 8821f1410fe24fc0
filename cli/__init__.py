"""Terminal frontends for the HB report pipeline."""
