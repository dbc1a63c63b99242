"""Built-in plugins registered by :meth:`Store.init_event_bus`."""
