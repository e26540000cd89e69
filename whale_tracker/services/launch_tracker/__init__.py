"""New launch and whale magnet tracking."""
