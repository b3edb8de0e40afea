"""Network clients: JSON-RPC, contract reads and the content bridge."""
