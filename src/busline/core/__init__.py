"""Event bus core: registries, history, dispatcher and manager."""
