"""HTTP API for the SuperSteaks draw backend."""
