"""Keep per-language JSON resource files in structural lockstep with a source language."""
