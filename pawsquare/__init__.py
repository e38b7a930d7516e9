"""PawSquare realtime presence and pet care assistant backend."""
